"""Chunk placement across storage backends."""

import os
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from common.logging_config import get_logger
from common.types import BackendName

logger = get_logger(__name__)

DISTRIBUTION_ENV = "SHARD_DISTRIBUTION"

DEFAULT_SLOT_TABLE: Tuple[BackendName, ...] = (
    BackendName.FILEBASE,
    BackendName.FILEBASE,
    BackendName.PINATA,
    BackendName.LIGHTHOUSE,
    BackendName.LIGHTHOUSE,
)


class DistributionPolicy:
    """
    Maps chunk indices to backends with a fixed slot table.

    Chunk ``i`` goes to ``slot_table[i % len(slot_table)]``, so for any
    chunk count that is a multiple of the table length every backend gets
    exactly its share. The default table gives filebase 40%, pinata 20%
    and lighthouse 40%.

    Only used when uploading; downloads follow the backend recorded in the
    manifest.
    """

    def __init__(self, slot_table: Sequence[BackendName] = DEFAULT_SLOT_TABLE):
        if not slot_table:
            raise ValueError("Slot table must contain at least one backend")
        self.slot_table: Tuple[BackendName, ...] = tuple(BackendName.parse(b) for b in slot_table)

    def __repr__(self) -> str:
        return f"DistributionPolicy({[b.value for b in self.slot_table]})"

    def backend_for(self, index: int) -> BackendName:
        if index < 0:
            raise ValueError(f"Chunk index must be non-negative, got {index}")
        return self.slot_table[index % len(self.slot_table)]

    def assign(self, total_chunks: int) -> List[BackendName]:
        """Backend of every chunk index 0..total_chunks-1."""
        return [self.backend_for(index) for index in range(total_chunks)]

    def count_per_backend(self, total_chunks: int) -> Dict[BackendName, int]:
        counts: Dict[BackendName, int] = {}
        for backend in self.assign(total_chunks):
            counts[backend] = counts.get(backend, 0) + 1
        return counts

    def backends(self, total_chunks: Optional[int] = None) -> List[BackendName]:
        """
        Distinct backends in first-use order.

        With ``total_chunks`` only the backends that chunk count actually
        reaches are returned.
        """
        table = self.slot_table if total_chunks is None else self.assign(total_chunks)
        seen: List[BackendName] = []
        for backend in table:
            if backend not in seen:
                seen.append(backend)
        return seen

    @classmethod
    def from_weights(cls, weights: Mapping[BackendName, int]) -> "DistributionPolicy":
        """
        Build a slot table from integer weights, e.g. {filebase: 2, pinata: 1}.

        Slots are laid out in the mapping's order; zero weights are skipped.
        """
        table: List[BackendName] = []
        for backend, weight in weights.items():
            if weight < 0:
                raise ValueError(f"Negative weight for {backend}: {weight}")
            table.extend([BackendName.parse(backend)] * weight)

        if not table:
            raise ValueError("At least one backend needs a positive weight")
        return cls(table)

    @classmethod
    def parse(cls, text: str) -> "DistributionPolicy":
        """Parse ``"filebase:2,pinata:1,lighthouse:2"``."""
        weights: Dict[BackendName, int] = {}
        for entry in text.split(","):
            entry = entry.strip()
            if not entry:
                continue
            name, sep, weight = entry.partition(":")
            if not sep:
                raise ValueError(f"Invalid distribution entry '{entry}', expected name:weight")
            try:
                weights[BackendName.parse(name)] = int(weight)
            except ValueError:
                raise ValueError(f"Invalid distribution entry '{entry}'")
        return cls.from_weights(weights)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DistributionPolicy":
        env = os.environ if environ is None else environ
        text = env.get(DISTRIBUTION_ENV, "").strip()
        if not text:
            return cls()

        policy = cls.parse(text)
        logger.info(f"Using distribution from {DISTRIBUTION_ENV}: {policy}")
        return policy
