"""
tsp_service/service.py
──────────────────────
TspRunService: wires the I/O collaborators around one colony run.

Run sequence
─────────────
  1. prepare_distances()
       matrix file exists → load it (MalformedMatrix is fatal)
       otherwise          → generate a random field, save it for next time
     then print the source line and the matrix preview.
  2. run()
       ColonySimulator with ConsoleReporter.iteration as its callback,
       then the final route/length lines.

All file access happens in step 1. Nothing touches the disk while ants
are running.

Randomness
───────────
One seed (config.seed) feeds a SeedSequence that is split in two: one
stream generates the distance matrix, the other drives the colony. A
loaded matrix therefore sees exactly the same colony stream as a freshly
generated one for the same seed.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np

from colony_core.colony import ColonySimulator
from colony_core.distance import DistanceField
from colony_core.pheromone import PheromoneField
from tsp_service.reporting.console import ConsoleReporter
from tsp_service.shared.models import ColonyConfig, RunReport, ServiceSettings
from tsp_service.storage.matrix_store import load_distances, save_distances

logger = logging.getLogger(__name__)


class TspRunService:
    """
    One end-to-end run: distances in, report out.

    Attributes:
        config   : ColonyConfig
        settings : ServiceSettings
        reporter : ConsoleReporter
        distances: DistanceField once prepare_distances() has run, else None.
    """

    def __init__(
        self,
        config: ColonyConfig,
        settings: Optional[ServiceSettings] = None,
        reporter: Optional[ConsoleReporter] = None,
    ) -> None:
        self.config = config
        self.settings = settings or ServiceSettings()
        self.reporter = reporter or ConsoleReporter(preview_size=self.settings.preview_size)
        self.distances: Optional[DistanceField] = None

        matrix_seq, colony_seq = np.random.SeedSequence(config.seed).spawn(2)
        self._matrix_rng = np.random.default_rng(matrix_seq)
        self._colony_rng = np.random.default_rng(colony_seq)

        logger.info(
            "TspRunService initialised: %d cities, %d ants, %d iterations.",
            config.n_cities, config.n_ants, config.n_iterations,
        )

    def prepare_distances(self) -> DistanceField:
        """
        Load the matrix file if present, otherwise generate and save one.

        Raises:
            MalformedMatrix: if the existing file is invalid for n_cities.
        """
        path = self.settings.matrix_path
        if path.exists():
            distances = load_distances(path, self.config.n_cities)
            loaded = True
        else:
            distances = DistanceField.random(
                self.config.n_cities,
                self.config.distance_low,
                self.config.distance_high,
                rng=self._matrix_rng,
            )
            logger.info(
                "Generated random %dx%d distance matrix in [%d, %d]",
                distances.n, distances.n,
                self.config.distance_low, self.config.distance_high,
            )
            save_distances(path, distances)
            loaded = False

        self.distances = distances
        self.reporter.matrix_source(path, loaded=loaded)
        self.reporter.matrix_preview(distances)
        return distances

    def build_simulator(self, pheromone: Optional[PheromoneField] = None) -> ColonySimulator:
        if self.distances is None:
            self.prepare_distances()
        return ColonySimulator(
            self.distances,
            self.config,
            rng=self._colony_rng,
            pheromone=pheromone,
            on_iteration=self.reporter.iteration,
        )

    def run(self, pheromone: Optional[PheromoneField] = None) -> Tuple[RunReport, ColonySimulator]:
        """
        Execute the full run and print the final lines.

        Returns:
            (report, simulator). Callers can pass the simulator's
            pheromone field to a later run as a warm start.
        """
        simulator = self.build_simulator(pheromone=pheromone)
        report = simulator.run()
        self.reporter.final(report)
        return report, simulator
