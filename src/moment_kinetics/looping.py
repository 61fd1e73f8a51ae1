"""
Work splitting over grid lines.

Advection along one coordinate touches every grid line independently, so the
lines (the product of the orthogonal index ranges) can be shared between
workers. Each worker is handed a contiguous block of the largest orthogonal
dimension and the full range of the others.

With a single worker everything here reduces to the full ranges and a no-op
barrier, which is how the advection driver runs.
"""

from itertools import product
from typing import Iterator, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


LoopRanges = Tuple[range, ...]


def split_range(n: int, nworkers: int, rank: int) -> range:
    """
    Contiguous block of range(n) owned by `rank`.

    The first n % nworkers workers get one extra index, so blocks differ in
    length by at most one. Workers beyond n get an empty range.

    Example:
        >>> [split_range(10, 3, r) for r in range(3)]
        [range(0, 4), range(4, 7), range(7, 10)]
    """
    if nworkers < 1:
        raise ValueError(f"nworkers must be >= 1, got {nworkers}")
    if not 0 <= rank < nworkers:
        raise ValueError(f"rank must be in [0, {nworkers}), got {rank}")
    base, extra = divmod(n, nworkers)
    start = rank * base + min(rank, extra)
    stop = start + base + (1 if rank < extra else 0)
    return range(start, stop)


def get_loop_ranges(shape: Sequence[int], nworkers: int = 1, rank: int = 0) -> LoopRanges:
    """Index range of each orthogonal dimension handled by `rank`."""
    ranges = [range(m) for m in shape]
    if not ranges or nworkers == 1:
        return tuple(ranges)
    split_dim = max(range(len(shape)), key=lambda d: shape[d])
    ranges[split_dim] = split_range(shape[split_dim], nworkers, rank)
    return tuple(ranges)


def iterate_lines(*ranges: Sequence[int]) -> Iterator[Tuple[int, ...]]:
    """Every tuple of orthogonal indices in the given ranges (one empty tuple for 1D)."""
    return product(*ranges)


class ParallelContext(BaseModel):
    """Rank of this worker among `nworkers` sharing the grid lines."""

    model_config = ConfigDict(frozen=True)

    nworkers: int = Field(default=1, ge=1)
    rank: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_rank(self) -> "ParallelContext":
        if self.rank >= self.nworkers:
            raise ValueError(f"rank={self.rank} must be < nworkers={self.nworkers}")
        return self

    def loop_ranges(self, shape: Sequence[int]) -> LoopRanges:
        return get_loop_ranges(shape, self.nworkers, self.rank)

    def barrier(self) -> None:
        """Synchronise workers. In-process execution has nothing to wait for."""
