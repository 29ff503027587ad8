"""
colony_core/pheromone.py
────────────────────────
The pheromone field: the colony's shared, evolving memory.

What is pheromone?
──────────────────
Ants that walk short tours leave more pheromone on the edges they used.
Later ants are drawn toward those edges. Over iterations the field
concentrates on the edges of good tours, without any ant ever seeing
the whole problem.

  τ[i][j] = desirability of moving from city i directly to city j.

Two forces balance each other:
  1. Evaporation  — every cell decays by a factor (1 − ρ) each iteration.
                    Old, unreinforced knowledge fades, so an early mediocre
                    tour cannot lock the colony in forever.
  2. Deposit      — every ant adds 1/length to each directed edge of its
                    tour. Shorter tours reinforce more strongly.

Direction matters
──────────────────
deposit(i, j) touches only τ[i][j], never τ[j][i]. The distance field
may be asymmetric, so i → j and j → i are different decisions.

Memory layout
─────────────
  Flat row-major float64 buffer of length n². Cell (i, j) at i*n + j.
  • Evaporation is one in-place vectorised multiply over the buffer.
  • row(i) is a contiguous view, read once per ant step.
  • snapshot() is the only place that hands out a full copy.

Thread safety
─────────────
Not thread-safe for writes. ColonySimulator reads it from many ants
(possibly on worker threads) and writes it only after every ant of the
iteration has finished.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from numpy.typing import NDArray


class PheromoneField:
    """
    A flat n×n buffer of non-negative pheromone levels.

    Used by:
        Ant._select_next()       → reads row(current) to weight candidates.
        ColonySimulator.step()   → evaporate() then deposit_tour() per ant.
        Tests                    → snapshot() to inspect state.
    """

    def __init__(self, n: int, tau0: float) -> None:
        """
        Allocate the field and fill it uniformly with tau0.

        Raises:
            ValueError: if n < 1 or tau0 is not a positive finite number.
        """
        self._n = 0
        self._tau0 = 0.0
        self._buffer: NDArray[np.float64] = np.empty(0, dtype=np.float64)
        self.initialize(n, tau0)

    def initialize(self, n: int, tau0: float) -> None:
        """
        Reset to an n×n field with every cell equal to tau0.

        All edges start equally attractive: at iteration 0 only the
        distance term differentiates candidates.
        """
        if n < 1:
            raise ValueError(f"PheromoneField requires n≥1, got n={n}")
        if not (math.isfinite(tau0) and tau0 > 0.0):
            raise ValueError(f"PheromoneField requires tau0 > 0, got tau0={tau0}")
        self._n = n
        self._tau0 = float(tau0)
        self._buffer = np.full(n * n, self._tau0, dtype=np.float64)

    # ── Core operations ────────────────────────────────────────────────────────

    def evaporate(self, rho: float) -> None:
        """
        Multiply every cell by (1 − rho), in place.

        rho = 0 leaves the field unchanged, rho = 1 zeroes it. The latter
        is degenerate (the next iteration relies on distance alone until
        deposits land) but legal.

        Raises:
            ValueError: if rho is outside [0, 1].
        """
        if not 0.0 <= rho <= 1.0:
            raise ValueError(f"evaporation rate must be in [0, 1], got {rho}")
        self._buffer *= (1.0 - rho)

    def deposit(self, i: int, j: int, amount: float) -> None:
        """
        Add amount to the directed edge i → j only.

        Raises:
            ValueError: if amount is negative or not finite.
        """
        if not (math.isfinite(amount) and amount >= 0.0):
            raise ValueError(f"deposit amount must be finite and ≥ 0, got {amount}")
        self._buffer[i * self._n + j] += amount

    def deposit_tour(self, tour: Sequence[int], amount: float) -> None:
        """
        Add amount to every directed edge of the closed tour.

        Edges: tour[0]→tour[1], ..., tour[-2]→tour[-1], tour[-1]→tour[0].
        In a valid tour every city leaves exactly once, so the n edges are
        distinct. np.add.at still accumulates repeats correctly.
        """
        if not (math.isfinite(amount) and amount >= 0.0):
            raise ValueError(f"deposit amount must be finite and ≥ 0, got {amount}")
        cities = np.asarray(tour, dtype=np.intp)
        if cities.size == 0:
            return
        edges = cities * self._n + np.roll(cities, -1)
        np.add.at(self._buffer, edges, amount)

    # ── Read access ────────────────────────────────────────────────────────────

    def value(self, i: int, j: int) -> float:
        return float(self._buffer[i * self._n + j])

    def row(self, i: int) -> NDArray[np.float64]:
        """
        Pheromone on every edge leaving city i, shape (n,).

        ⚠️ A VIEW into the live buffer. Callers must not mutate it.
        """
        start = i * self._n
        return self._buffer[start:start + self._n]

    def snapshot(self) -> NDArray[np.float64]:
        """A deep n×n copy; later updates do not affect it."""
        return self._buffer.reshape(self._n, self._n).copy()

    def copy(self) -> PheromoneField:
        """An independent field with the same values (warm-start seed)."""
        clone = PheromoneField(self._n, self._tau0)
        clone._buffer[:] = self._buffer
        return clone

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def n(self) -> int:
        return self._n

    @property
    def tau0(self) -> float:
        """The level this field was (last) initialised with."""
        return self._tau0

    @property
    def shape(self) -> tuple[int, int]:
        return (self._n, self._n)

    def __repr__(self) -> str:
        return (
            f"PheromoneField(n={self._n}, min={self._buffer.min():.4f}, "
            f"max={self._buffer.max():.4f}, mean={self._buffer.mean():.4f})"
        )
