"""
colony_core/colony.py
─────────────────────
The colony simulator: drives every ant through every iteration.

How the colony works
─────────────────────
  1. Owns a PheromoneField (fresh at τ₀, or a warm-start field handed in).
  2. For each iteration:
       a. Spawns M ants. Each builds one full tour from its own start
          city using the current, frozen pheromone field.
       b. Scores each tour (closed length) and keeps the best tour of
          the whole run (strict <, so ties keep the older tour).
       c. Evaporates the field by ρ.
       d. Every ant deposits 1/length on each directed edge it used,
          including the closing edge back to its start.
       e. Emits an IterationRecord to the reporting callback.
  3. After the fixed iteration budget: returns a RunReport.

State machine
──────────────
  RUNNING → iterations remain; step() is allowed.
  DONE    → budget exhausted; step() raises, run() returns the report.
There is no other state and no convergence-based stop.

Random numbers
───────────────
One master numpy Generator (seeded from config.seed or injected). Each
iteration it spawns M child generators, one per ant, in ant order. An
ant only ever touches its own child, so:
  • the sequential run is bit-for-bit reproducible for a given seed;
  • running the ants on worker threads (config.n_workers > 1) gives the
    exact same tours, because results are merged in ant order.

Barrier
────────
All M ants finish reading the field before evaporate()/deposit run, and
the update finishes before the next iteration's ants start. With a
thread pool, executor.map() returning is the barrier.
"""

from __future__ import annotations

import enum
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np
from numpy.typing import NDArray

from colony_core.ant import Ant
from colony_core.distance import DistanceField
from colony_core.pheromone import PheromoneField
from tsp_service.shared.models import (
    BestSolution,
    ColonyConfig,
    IterationRecord,
    RunReport,
)

logger = logging.getLogger(__name__)


class SimulatorState(str, enum.Enum):
    RUNNING = "running"
    DONE = "done"


@dataclass(frozen=True)
class AntResult:
    """One ant's output for one iteration. Discarded after the update step."""
    tour: NDArray[np.intp]
    length: float
    degenerate_steps: int


def tour_length(distances: DistanceField, tour) -> float:
    """Closed-tour length: consecutive edges plus the edge back to the start."""
    return distances.tour_length(tour)


class ColonySimulator:
    """
    Runs the ACO loop over one distance field.

    Usage:
        sim    = ColonySimulator(distances, ColonyConfig(n_cities=distances.n))
        report = sim.run()
        report.best_tour, report.best_length

    Warm start (optional):
        follow_up = ColonySimulator(distances, config,
                                    pheromone=sim.pheromone.copy())

    Attributes:
        state     : SimulatorState — RUNNING until the budget is spent.
        iteration : int            — iterations completed so far.
        best      : BestSolution   — shortest tour seen so far.
        history   : List[IterationRecord]
        pheromone : PheromoneField — the live field (read it, don't write it).
    """

    def __init__(
        self,
        distances: DistanceField,
        config: ColonyConfig,
        rng: Optional[np.random.Generator] = None,
        pheromone: Optional[PheromoneField] = None,
        on_iteration: Optional[Callable[[IterationRecord], None]] = None,
    ) -> None:
        """
        Raises:
            ValueError: if config.n_cities or the warm-start field does not
                        match the distance field.
        """
        if config.n_cities != distances.n:
            raise ValueError(
                f"config.n_cities={config.n_cities} does not match "
                f"distance field n={distances.n}"
            )
        if pheromone is not None and pheromone.n != distances.n:
            raise ValueError(
                f"warm-start pheromone field n={pheromone.n} does not match "
                f"distance field n={distances.n}"
            )

        self._distances = distances
        self._config = config
        self._rng = rng if rng is not None else np.random.default_rng(config.seed)
        self.pheromone = (
            pheromone if pheromone is not None
            else PheromoneField(distances.n, config.initial_pheromone)
        )
        self._on_iteration = on_iteration

        self.state = SimulatorState.RUNNING
        self.iteration = 0
        self.best = BestSolution()
        self.history: List[IterationRecord] = []
        self.last_run_ms: float = 0.0
        self._pool: Optional[ThreadPoolExecutor] = None

    @property
    def _workers(self) -> int:
        return min(self._config.n_workers, self._config.n_ants)

    # ── One ant ───────────────────────────────────────────────────────────────

    def _run_ant(self, rng: np.random.Generator) -> AntResult:
        ant = Ant(
            self._distances,
            self.pheromone,
            self._config.alpha,
            self._config.beta,
            rng,
        )
        tour = ant.construct(start=self._config.start_city)
        return AntResult(tour=tour, length=ant.length, degenerate_steps=ant.degenerate_steps)

    def _construct_tours(self) -> List[AntResult]:
        """Build all M tours for this iteration, in ant order."""
        ant_rngs = self._rng.spawn(self._config.n_ants)
        if self._workers <= 1:
            return [self._run_ant(r) for r in ant_rngs]
        if self._pool is not None:
            return list(self._pool.map(self._run_ant, ant_rngs))
        # step() outside run(): no shared pool to borrow.
        with ThreadPoolExecutor(max_workers=self._workers) as pool:
            return list(pool.map(self._run_ant, ant_rngs))

    # ── Pheromone update ──────────────────────────────────────────────────────

    def _update_pheromone(self, results: List[AntResult]) -> None:
        """Evaporate, then deposit 1/length along every ant's closed tour."""
        self.pheromone.evaporate(self._config.evaporation_rate)
        for result in results:
            if result.length <= 0.0:
                # 1/length is undefined for an all-zero tour.
                logger.debug("Skipping deposit for zero-length tour %s", result.tour.tolist())
                continue
            self.pheromone.deposit_tour(result.tour, 1.0 / result.length)

    # ── Main loop ─────────────────────────────────────────────────────────────

    def step(self) -> IterationRecord:
        """
        Run exactly one iteration.

        Returns:
            The IterationRecord for this iteration (also appended to history
            and passed to on_iteration).

        Raises:
            RuntimeError: if the simulator is already DONE.
        """
        if self.state is SimulatorState.DONE:
            raise RuntimeError(
                f"ColonySimulator is done after {self.iteration} iteration(s)"
            )

        results = self._construct_tours()

        for result in results:
            self.best.consider(result.tour, result.length)

        self._update_pheromone(results)

        self.iteration += 1
        lengths = [r.length for r in results]
        record = IterationRecord(
            iteration=self.iteration,
            best_length=self.best.length,
            iteration_best_length=min(lengths),
            mean_length=sum(lengths) / len(lengths),
            degenerate_steps=sum(r.degenerate_steps for r in results),
        )
        self.history.append(record)
        logger.debug(
            "Iteration %d: best=%.4f iteration_best=%.4f mean=%.4f",
            record.iteration, record.best_length,
            record.iteration_best_length, record.mean_length,
        )

        if self.iteration >= self._config.n_iterations:
            self.state = SimulatorState.DONE

        if self._on_iteration is not None:
            self._on_iteration(record)
        return record

    def run(self) -> RunReport:
        """
        Step until DONE and return the final report.

        Calling run() on an already finished simulator returns the same
        report again without doing any work. With n_workers > 1 a single
        thread pool serves every iteration of the run.
        """
        start = time.perf_counter()
        if self._workers > 1 and self.state is SimulatorState.RUNNING:
            self._pool = ThreadPoolExecutor(max_workers=self._workers)
        try:
            while self.state is SimulatorState.RUNNING:
                self.step()
        finally:
            if self._pool is not None:
                self._pool.shutdown(wait=True)
                self._pool = None
        self.last_run_ms += (time.perf_counter() - start) * 1000.0

        logger.info(
            "Colony finished: %d iteration(s), best length %.4f (%.2fms)",
            self.iteration, self.best.length, self.last_run_ms,
        )
        return self.report()

    def report(self) -> RunReport:
        """Snapshot of the run so far as a RunReport."""
        if self.best.is_empty:
            raise RuntimeError("No iteration has completed yet; nothing to report")
        return RunReport(
            n_cities=self._distances.n,
            n_ants=self._config.n_ants,
            best_tour=list(self.best.tour),
            best_length=self.best.length,
            iterations=list(self.history),
            elapsed_ms=self.last_run_ms,
        )

    def __repr__(self) -> str:
        return (
            f"ColonySimulator(n={self._distances.n}, ants={self._config.n_ants}, "
            f"state={self.state.value}, iteration={self.iteration}/{self._config.n_iterations}, "
            f"best={self.best.length:.4f})"
        )
