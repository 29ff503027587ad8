"""
tsp_service/shared/models.py
────────────────────────────
Every data structure that crosses a component boundary.

Reading guide
-------------
Section 1 is configuration: what the colony and the service are told.
Section 2 is results: what the colony reports back.

The hot loop (ants, per-ant tours) deliberately does NOT use these
models: pydantic validation per ant step would dominate the runtime.
Tours travel as numpy arrays inside colony_core and are converted to
plain lists only when they land in a BestSolution or RunReport.
"""

from __future__ import annotations

import logging
import math
import os
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 1: CONFIGURATION
# ─────────────────────────────────────────────────────────────────────────────

class ColonyConfig(BaseModel):
    """
    Hyperparameters for one colony run.

    Defaults reproduce the classic benchmark set-up: 300 cities,
    100 ants, 100 iterations, α=1, β=5, ρ=0.2, τ₀=1.

    Fields:
        n_cities          → Number of cities N. Must match the distance field.
        n_ants            → Ants (tours) per iteration, M.
        n_iterations      → Fixed iteration budget. No convergence stop.
        alpha             → Pheromone exponent.
        beta              → Inverse-distance exponent. β > α means short
                            edges dominate early, before τ differentiates.
        evaporation_rate  → ρ. Fraction of pheromone lost per iteration.
        initial_pheromone → τ₀. Uniform starting level.
        distance_low/high → Inclusive bounds for generated integer costs.
        seed              → Seed for the master generator. None = OS entropy.
        start_city        → Fixed start for every ant. None = uniform draw
                            per ant.
        n_workers         → Threads used to build the ants' tours.
                            1 = strictly sequential.
    """
    n_cities: int = Field(300, ge=2, description="Number of cities N")
    n_ants: int = Field(100, ge=1, description="Ants per iteration M")
    n_iterations: int = Field(100, ge=1, description="Iteration budget")

    alpha: float = Field(1.0, ge=0.0, description="Pheromone influence exponent")
    beta: float = Field(5.0, ge=0.0, description="Inverse-distance influence exponent")
    evaporation_rate: float = Field(
        0.2, ge=0.0, le=1.0,
        description="ρ: multiplicative decay applied to every cell per iteration"
    )
    initial_pheromone: float = Field(1.0, gt=0.0, description="τ₀: starting level on every edge")

    distance_low: int = Field(5, ge=1, description="Smallest generated distance")
    distance_high: int = Field(150, ge=1, description="Largest generated distance")

    seed: Optional[int] = Field(None, ge=0, description="Master RNG seed. None = non-reproducible")
    start_city: Optional[int] = Field(
        None, ge=0,
        description="If set, every ant starts here instead of a uniform draw"
    )
    n_workers: int = Field(1, ge=1, description="Worker threads for tour construction")

    @model_validator(mode="after")
    def _check_ranges(self) -> ColonyConfig:
        if self.distance_high < self.distance_low:
            raise ValueError(
                f"distance_high ({self.distance_high}) must be ≥ distance_low ({self.distance_low})"
            )
        if self.start_city is not None and self.start_city >= self.n_cities:
            raise ValueError(
                f"start_city ({self.start_city}) must be < n_cities ({self.n_cities})"
            )
        return self


class ServiceSettings(BaseModel):
    """
    Settings for the peripheral I/O around a run.

    matrix_path  → Distance matrix CSV. Loaded if it exists, otherwise
                   written after generating a random matrix.
    preview_size → Side of the top-left block printed on startup.
    log_level    → Root logging level name for the entry point.
    """
    matrix_path: Path = Field(Path("distances.csv"))
    preview_size: int = Field(10, ge=0)
    log_level: str = Field("INFO")

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        name = value.strip().upper()
        if not isinstance(logging.getLevelName(name), int):
            raise ValueError(
                f"unknown log level {value!r}; expected one of "
                "DEBUG, INFO, WARNING, ERROR, CRITICAL"
            )
        return name


ENV_PREFIX: str = "TSP_"
"""Prefix of environment variables that override config fields.

TSP_N_CITIES=50 sets ColonyConfig.n_cities, TSP_MATRIX_PATH=/tmp/d.csv
sets ServiceSettings.matrix_path, and so on. Values are strings; pydantic
coerces and validates them.
"""


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
) -> Tuple[ColonyConfig, ServiceSettings]:
    """
    Build (ColonyConfig, ServiceSettings) from defaults plus TSP_* overrides.

    An empty value for an optional field (e.g. TSP_SEED=) means None.

    Raises:
        pydantic.ValidationError: if any override fails validation.
    """
    environ = os.environ if environ is None else environ

    def _overrides(model: type[BaseModel]) -> dict:
        found = {}
        for name in model.model_fields:
            key = f"{ENV_PREFIX}{name.upper()}"
            if key in environ:
                raw = environ[key].strip()
                found[name] = raw if raw else None
        return found

    colony = ColonyConfig(**_overrides(ColonyConfig))
    service = ServiceSettings(**_overrides(ServiceSettings))
    return colony, service


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 2: RESULTS
# ─────────────────────────────────────────────────────────────────────────────

class BestSolution(BaseModel):
    """
    The shortest tour seen so far in a run.

    Starts empty with length = +inf, so the first real tour always wins.
    Only a strictly shorter tour replaces it: on a tie the earlier tour
    is kept. Its length is therefore monotonically non-increasing.
    """
    tour: List[int] = Field(default_factory=list)
    length: float = Field(math.inf)

    def consider(self, tour, length: float) -> bool:
        """Replace the record if length is strictly shorter. Returns True if replaced."""
        if length < self.length:
            self.tour = [int(c) for c in tour]
            self.length = float(length)
            return True
        return False

    @property
    def is_empty(self) -> bool:
        return not self.tour


class IterationRecord(BaseModel):
    """
    What one iteration reports to the outside world.

    Fields:
        iteration             → 1-based iteration number.
        best_length           → Best-so-far length after this iteration.
        iteration_best_length → Shortest tour among this iteration's ants.
        mean_length           → Mean tour length of this iteration's ants.
        degenerate_steps      → Uniform-fallback selections across all ants.
    """
    iteration: int = Field(..., ge=1)
    best_length: float = Field(..., ge=0.0)
    iteration_best_length: float = Field(..., ge=0.0)
    mean_length: float = Field(..., ge=0.0)
    degenerate_steps: int = Field(0, ge=0)


class RunReport(BaseModel):
    """
    The full outcome of a ColonySimulator.run().

    best_tour / best_length → BestSolution at termination.
    iterations              → One IterationRecord per iteration, in order.
    elapsed_ms              → Wall-clock duration of run().
    """
    n_cities: int = Field(..., ge=1)
    n_ants: int = Field(..., ge=1)
    best_tour: List[int]
    best_length: float = Field(..., ge=0.0)
    iterations: List[IterationRecord] = Field(default_factory=list)
    elapsed_ms: float = Field(0.0, ge=0.0)

    @property
    def best_length_history(self) -> List[float]:
        """Best-so-far length per iteration, oldest first."""
        return [record.best_length for record in self.iterations]
