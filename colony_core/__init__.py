"""
colony_core — Ant Colony Optimisation for the travelling salesman problem.

Public API:
    DistanceField               — immutable n×n travel costs
    PheromoneField              — mutable n×n pheromone levels
    Ant                         — builds one tour by roulette-wheel selection
    ColonySimulator             — runs the fixed-budget ACO loop
    SelectionInvariantViolation — fatal: the roulette wheel chose nothing

Usage:
    from colony_core import ColonySimulator, DistanceField
    from tsp_service.shared.models import ColonyConfig

    distances = DistanceField.random(50, 5, 150)
    report = ColonySimulator(distances, ColonyConfig(n_cities=50)).run()
"""

from colony_core.ant import Ant, SelectionInvariantViolation, is_valid_tour
from colony_core.colony import AntResult, ColonySimulator, SimulatorState, tour_length
from colony_core.distance import DistanceField
from colony_core.pheromone import PheromoneField

__all__ = [
    "Ant",
    "AntResult",
    "ColonySimulator",
    "DistanceField",
    "PheromoneField",
    "SelectionInvariantViolation",
    "SimulatorState",
    "is_valid_tour",
    "tour_length",
]
