"""
colony_core/ant.py
──────────────────
One ant: builds one complete tour through every city.

What does an ant do?
─────────────────────
An ant starts at a city and repeatedly picks the next city among those
it has not visited yet. The pick is random but biased: edges with more
pheromone and shorter distance are more likely. When every city has
been visited the tour closes implicitly back to the start.

The selection formula
──────────────────────
For current city c and every unvisited city i:

  a_i = τ[c][i]^α × (1 / d[c][i])^β

  α: pheromone exponent, how much the colony's memory drives choice.
  β: distance exponent, how much "prefer the short edge" drives choice.

P(next = i) = a_i / Σ a_k over unvisited k.

Roulette wheel
───────────────
Candidates are walked in ascending city index. With cumsum the running
total of a_i and sum = cumsum[-1]:

  r      = U[0, 1) × sum
  chosen = first candidate with cumsum ≥ r      (searchsorted, left)

The canonical order plus the injected generator make a run bit-for-bit
reproducible for a fixed seed. Using cumsum[-1] as the sum (instead of
a separately computed total) guarantees r ≤ cumsum[-1], so the search
always lands on a candidate.

Degenerate steps
─────────────────
If sum is 0 (all remaining τ are 0, e.g. after evaporate(1)) or not
finite (some remaining d[c][i] is 0, so 1/d is infinite), the weights
carry no usable information. The ant then picks uniformly among the
unvisited cities with the same generator. This is counted in
degenerate_steps and never treated as an error.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from colony_core.distance import DistanceField
from colony_core.pheromone import PheromoneField

logger = logging.getLogger(__name__)


class SelectionInvariantViolation(RuntimeError):
    """
    Raised when the roulette wheel finishes without choosing a city.

    This cannot happen when the degenerate fallback and the cumsum-based
    total are in place. Seeing it means the selection code is broken;
    it is not a user-facing condition and must not be retried.

    Attributes:
        current_city: The city the ant was leaving.
        n_candidates: How many unvisited cities were on the wheel.
    """

    def __init__(self, current_city: int, n_candidates: int, draw: float, total: float) -> None:
        self.current_city = current_city
        self.n_candidates = n_candidates
        super().__init__(
            f"No city selected from city {current_city}: draw {draw!r} exceeds "
            f"cumulative weight {total!r} over {n_candidates} candidate(s)."
        )


def is_valid_tour(tour, n: int) -> bool:
    """True if tour is a permutation of range(n)."""
    cities = np.asarray(tour)
    if cities.shape != (n,):
        return False
    return bool(np.array_equal(np.sort(cities), np.arange(n)))


class Ant:
    """
    Constructs one tour using pheromone + inverse distance.

    Lifecycle:
        1. __init__()    → bind the two fields, exponents and a generator.
        2. construct()   → walk every city, return the tour.
        3. Read results: ant.tour, ant.length, ant.degenerate_steps.

    Single use: create a new Ant for each construction.

    The ant never writes to either field. Many ants may read the same
    fields concurrently as long as nobody updates them meanwhile.
    """

    def __init__(
        self,
        distances: DistanceField,
        pheromone: PheromoneField,
        alpha: float,
        beta: float,
        rng: np.random.Generator,
    ) -> None:
        if distances.n != pheromone.n:
            raise ValueError(
                f"Ant requires matching fields, got distances n={distances.n}, "
                f"pheromone n={pheromone.n}"
            )
        self._distances = distances
        self._pheromone = pheromone
        self._alpha = alpha
        self._beta = beta
        self._rng = rng
        self._n = distances.n

        self.tour: NDArray[np.intp] = np.empty(0, dtype=np.intp)
        self.length: float = math.inf
        self.degenerate_steps: int = 0

    # ── City selection ─────────────────────────────────────────────────────────

    def _select_next(self, current: int, unvisited: NDArray[np.bool_]) -> int:
        """
        Pick the next city from `current` by roulette wheel.

        Args:
            current:   City the ant is standing on.
            unvisited: Boolean mask of shape (n,), True where still open.

        Returns:
            Index of the chosen city.

        Raises:
            SelectionInvariantViolation: if the wheel yields no city.
        """
        candidates = np.flatnonzero(unvisited)

        tau = self._pheromone.row(current)[candidates]
        dist = self._distances.row(current)[candidates]
        with np.errstate(divide="ignore", over="ignore", invalid="ignore"):
            attraction = (tau ** self._alpha) * ((1.0 / dist) ** self._beta)

        cumulative = np.cumsum(attraction)
        total = float(cumulative[-1])

        if total == 0.0 or not math.isfinite(total):
            self.degenerate_steps += 1
            chosen = int(candidates[self._rng.integers(candidates.size)])
            logger.debug(
                "Degenerate selection at city %d (sum=%r, %d candidates) → uniform pick %d",
                current, total, candidates.size, chosen,
            )
            return chosen

        draw = self._rng.random() * total
        pos = int(np.searchsorted(cumulative, draw, side="left"))
        if pos >= candidates.size:
            raise SelectionInvariantViolation(current, int(candidates.size), draw, total)
        return int(candidates[pos])

    # ── Tour construction ──────────────────────────────────────────────────────

    def construct(self, start: Optional[int] = None) -> NDArray[np.intp]:
        """
        Build a full tour.

        Args:
            start: First city. If None it is drawn uniformly from all n
                   cities before any weighting applies.

        Returns:
            1-D array of length n, a permutation of range(n).

        Post-conditions:
            self.tour, self.length (closed-tour length) and
            self.degenerate_steps are set.
        """
        n = self._n
        if start is None:
            start = int(self._rng.integers(n))
        elif not 0 <= start < n:
            raise ValueError(f"start city must be in [0, {n}), got {start}")

        tour = np.empty(n, dtype=np.intp)
        unvisited = np.ones(n, dtype=bool)

        current = start
        tour[0] = current
        unvisited[current] = False

        for step in range(1, n):
            current = self._select_next(current, unvisited)
            tour[step] = current
            unvisited[current] = False

        self.tour = tour
        self.length = self._distances.tour_length(tour)
        return tour

    def __repr__(self) -> str:
        return (
            f"Ant(n={self._n}, built={self.tour.size == self._n}, "
            f"length={self.length:.4f}, degenerate_steps={self.degenerate_steps})"
        )
