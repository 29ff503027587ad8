"""
colony_core/distance.py
───────────────────────
The distance field: the fixed travel cost between every ordered pair of cities.

What is the distance field?
────────────────────────────
A city is nothing more than an integer index in [0, n). The only thing
the colony knows about geography is this matrix:

  d[i][j] = cost of travelling from city i to city j.

It is produced once (generated or loaded by tsp_service.storage) and then
read by every ant in every iteration. Nothing writes to it during a run.

Symmetry
─────────
The random generator draws every ordered pair independently, so in
general d[i][j] != d[j][i]. Consumers must never assume symmetry: the
ant reads row i for "leaving city i", and the tour length walks the
tour in its own direction.

Invariants (checked at construction)
─────────────────────────────────────
  • Square, n ≥ 1.
  • Every entry finite and ≥ 0.
  • Diagonal exactly 0.

Off-diagonal zeros are accepted but logged: 1/d is infinite for those
edges, which pushes the ant into its uniform fallback for that step.

Memory layout
──────────────
A flat, row-major float64 buffer of length n². Cell (i, j) lives at
index i*n + j. row(i) is a contiguous slice, so reading one city's
outgoing costs is a single view with no copy.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)


class DistanceField:
    """
    Immutable n×n matrix of non-negative travel costs.

    Used by:
        Ant._select_next()         → reads row(current) each step.
        ColonySimulator.step()     → calls tour_length() once per ant.
        ConsoleReporter            → prints preview() on startup.
        matrix_store               → builds it from a file, saves as_matrix().

    Attributes:
        n: number of cities.
    """

    def __init__(self, matrix: ArrayLike) -> None:
        """
        Validate and freeze a square cost matrix.

        Args:
            matrix: Any n×n array-like of numbers (nested lists, ndarray).

        Raises:
            ValueError: if the matrix is empty, not square, contains
                        negative or non-finite values, or has a non-zero
                        diagonal.
        """
        arr = np.array(matrix, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[0] == 0 or arr.shape[0] != arr.shape[1]:
            raise ValueError(
                f"DistanceField requires a non-empty square matrix, got shape {arr.shape}"
            )
        if not np.all(np.isfinite(arr)):
            raise ValueError("DistanceField entries must be finite")
        if np.any(arr < 0.0):
            raise ValueError("DistanceField entries must be non-negative")
        if np.any(np.diagonal(arr) != 0.0):
            raise ValueError("DistanceField diagonal must be zero")

        n = arr.shape[0]
        off_diagonal_zeros = int(np.count_nonzero(arr == 0.0)) - n
        if off_diagonal_zeros:
            logger.warning(
                "DistanceField: %d off-diagonal zero distance(s) in a %dx%d matrix; "
                "ants fall back to uniform selection on those steps.",
                off_diagonal_zeros, n, n,
            )

        self._n = n
        self._buffer: NDArray[np.float64] = arr.reshape(n * n)
        self._buffer.flags.writeable = False

    @classmethod
    def random(
        cls,
        n: int,
        low: int,
        high: int,
        rng: Optional[np.random.Generator] = None,
    ) -> DistanceField:
        """
        Generate a field of independent uniform integer costs in [low, high].

        Every ordered off-diagonal pair (i, j) gets its own draw, so the
        result is asymmetric in general. The diagonal is 0.

        Raises:
            ValueError: if n < 1 or not 0 < low <= high.
        """
        if n < 1:
            raise ValueError(f"DistanceField.random requires n≥1, got n={n}")
        if low <= 0 or high < low:
            raise ValueError(
                f"DistanceField.random requires 0 < low <= high, got low={low}, high={high}"
            )
        rng = rng if rng is not None else np.random.default_rng()
        matrix = rng.integers(low, high, size=(n, n), endpoint=True).astype(np.float64)
        np.fill_diagonal(matrix, 0.0)
        return cls(matrix)

    # ── Accessors ──────────────────────────────────────────────────────────────

    def distance(self, i: int, j: int) -> float:
        """Cost of the directed edge i → j."""
        return float(self._buffer[i * self._n + j])

    def row(self, i: int) -> NDArray[np.float64]:
        """
        Outgoing costs from city i, shape (n,).

        A read-only view into the flat buffer.
        """
        start = i * self._n
        return self._buffer[start:start + self._n]

    def tour_length(self, tour: Sequence[int]) -> float:
        """
        Length of the closed tour: consecutive edges plus last → first.

        Works for any direction and any rotation of the tour. A tour
        with a single city has length d[c][c] = 0.
        """
        cities = np.asarray(tour, dtype=np.intp)
        if cities.size == 0:
            return 0.0
        successors = np.roll(cities, -1)
        return float(self._buffer[cities * self._n + successors].sum())

    def as_matrix(self) -> NDArray[np.float64]:
        """A writable n×n copy of the field."""
        return self._buffer.reshape(self._n, self._n).copy()

    def preview(self, size: int) -> NDArray[np.float64]:
        """Top-left size×size block (clamped to n), as a copy."""
        k = max(0, min(size, self._n))
        return self.as_matrix()[:k, :k]

    @property
    def n(self) -> int:
        return self._n

    @property
    def shape(self) -> tuple[int, int]:
        return (self._n, self._n)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DistanceField):
            return NotImplemented
        return self._n == other._n and bool(np.array_equal(self._buffer, other._buffer))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        off = self._buffer[self._buffer > 0]
        if off.size == 0:
            return f"DistanceField(n={self._n})"
        return (
            f"DistanceField(n={self._n}, min={off.min():.2f}, "
            f"max={off.max():.2f}, mean={off.mean():.2f})"
        )
