"""Formatting helpers for sizes, chunk maps and backend shares."""

from typing import Any, Dict, Mapping

SIZE_UNITS = ('KiB', 'MiB', 'GiB', 'TiB', 'PiB')


def format_file_size(size_bytes: int) -> str:
    """
    Human-readable size with binary units, e.g. "512 B" or "1.50 MiB".

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    size = float(size_bytes)
    for unit in SIZE_UNITS:
        size /= 1024.0
        if size < 1024.0 or unit == SIZE_UNITS[-1]:
            return f"{size:.2f} {unit}"


def format_distribution(count_per_backend: Mapping[str, int]) -> str:
    """
    Chunk share of every backend, e.g. "filebase=2 (40%), pinata=1 (20%)".

    Backends are listed by name; an empty map renders as "no chunks".
    """
    total = sum(count_per_backend.values())
    if not total:
        return "no chunks"

    return ", ".join(
        f"{name}={count} ({count * 100 // total}%)"
        for name, count in sorted(count_per_backend.items())
    )


def format_chunk_line(chunk: Dict[str, Any]) -> str:
    """One manifest chunk entry as a fixed-width line with a shortened digest."""
    return (
        f"  [{chunk['index']:>3}] {chunk['service']:<10} {chunk['cid']}  "
        f"{format_file_size(chunk['size'])}  sha256={chunk['checksum'][:12]}..."
    )
