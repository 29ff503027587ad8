"""
tsp_service/reporting/console.py
────────────────────────────────
Human-readable console output for a run.

Three moments produce output:

  startup    →  where the matrix came from, then a preview of its
                top-left corner:
                    Matrix loaded from distances.csv
                    Graph Distances (matrix):
                       0   17  143 ...
  iteration  →  Iteration 3: Best Length = 1234
  final      →  Best Route: 4 -> 0 -> 2 -> ...
                Best Length: 1234

This is presentation only. Diagnostics go through logging; nothing in
colony_core prints.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, TextIO, Union

from colony_core.distance import DistanceField
from tsp_service.shared.models import IterationRecord, RunReport


def format_length(value: float) -> str:
    """Integral lengths print without a decimal part."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.4f}"


def format_route(tour) -> str:
    return " -> ".join(str(int(c)) for c in tour)


class ConsoleReporter:
    """
    Writes run progress to a text stream (stdout by default).

    Usable directly as ColonySimulator's on_iteration callback:

        reporter = ConsoleReporter()
        ColonySimulator(distances, config, on_iteration=reporter.iteration)
    """

    def __init__(self, stream: Optional[TextIO] = None, preview_size: int = 10) -> None:
        self._stream = stream
        self._preview_size = preview_size

    @property
    def stream(self) -> TextIO:
        # Resolved lazily so pytest's capsys replacement of sys.stdout is honoured.
        return self._stream if self._stream is not None else sys.stdout

    def _write(self, text: str = "") -> None:
        self.stream.write(text + "\n")

    def matrix_source(self, path: Union[str, Path], loaded: bool) -> None:
        verb = "loaded from" if loaded else "saved to"
        self._write(f"Matrix {verb} {path}")

    def matrix_preview(self, distances: DistanceField) -> None:
        self._write("Graph Distances (matrix):")
        for row in distances.preview(self._preview_size):
            self._write(" ".join(f"{format_length(v):>4}" for v in row))

    def iteration(self, record: IterationRecord) -> None:
        self._write(
            f"Iteration {record.iteration}: Best Length = {format_length(record.best_length)}"
        )

    def final(self, report: RunReport) -> None:
        self._write(f"Best Route: {format_route(report.best_tour)}")
        self._write(f"Best Length: {format_length(report.best_length)}")
