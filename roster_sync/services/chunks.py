from __future__ import annotations

import time
from collections.abc import Callable, Iterator, Sequence
from typing import TypeVar

"""Fixed-size chunking with a cooperative pause between chunks.

Chunking only bounds how much work happens between pauses; results never
depend on the chunk size.
"""

__all__ = [
    "iter_chunks",
    "chunk_count",
]

T = TypeVar("T")


def chunk_count(total: int, size: int) -> int:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return (total + size - 1) // size


def iter_chunks(
    items: Sequence[T],
    size: int,
    pause: float = 0.0,
    sleep: Callable[[float], None] | None = None,
) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of ``items``.

    Sleeps ``pause`` seconds between chunks (never after the last one).
    """
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(items), size):
        if start and pause > 0:
            (sleep or time.sleep)(pause)
        yield items[start:start + size]
