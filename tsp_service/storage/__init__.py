"""
tsp_service/storage — distance matrix persistence.

Public API:
    load_distances   — CSV file → DistanceField
    save_distances   — DistanceField → CSV file
    MalformedMatrix  — raised when a file cannot be an N×N matrix
"""

from tsp_service.storage.matrix_store import MalformedMatrix, load_distances, save_distances

__all__ = ["MalformedMatrix", "load_distances", "save_distances"]
