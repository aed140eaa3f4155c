"""Error body shared by every gateway endpoint."""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    JSON body of every failed request.

    ``code`` is stable across releases and is what clients branch on;
    ``detail`` is for humans.
    """
    detail: str
    code: str = Field(..., examples=["ALL_BACKENDS_FAILED"])
    request_id: Optional[str] = None
    backend: Optional[str] = Field(None, description="Storage service involved, when one is known")
    chunk_index: Optional[int] = Field(None, description="Chunk that failed, for per-chunk errors")
