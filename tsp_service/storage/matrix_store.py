"""
tsp_service/storage/matrix_store.py
───────────────────────────────────
Reading and writing the distance matrix file.

File format
────────────
Plain text, exactly N lines, each N comma-separated numbers:

    0,17,143
    96,0,8
    51,77,0

Row i, column j = distance from city i to city j. No header, no trailing
metadata. Integers and decimals are both accepted on read; integral
values are written without a decimal part.

Error handling contract
────────────────────────
  MalformedMatrix: the file exists but cannot become an N×N DistanceField
                   (wrong row count, wrong column count, an unparseable
                   field, or a value the DistanceField rejects).
                   Fatal for a run. Raised before any DistanceField is
                   built, so a failed load leaves nothing half-initialised.

  OSError:         missing or unreadable file. Propagated unchanged; the
                   service checks existence before calling load.
"""

from __future__ import annotations

import csv
import logging
import math
from pathlib import Path
from typing import List, Optional, Union

from colony_core.distance import DistanceField

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class MalformedMatrix(ValueError):
    """
    Raised when a distance file does not describe a valid N×N matrix.

    Attributes:
        path: The offending file.
        line: 1-based line number of the first problem, or None when the
              problem is not tied to one line (e.g. row count).
    """

    def __init__(self, path: PathLike, message: str, line: Optional[int] = None) -> None:
        self.path = Path(path)
        self.line = line
        where = f"{self.path}" if line is None else f"{self.path}:{line}"
        super().__init__(f"Malformed distance matrix {where}: {message}")


def _parse_field(raw: str, path: PathLike, line: int, column: int) -> float:
    text = raw.strip()
    try:
        return float(text)
    except ValueError:
        raise MalformedMatrix(
            path, f"field {column + 1} is not a number: {raw!r}", line=line
        ) from None


def load_distances(path: PathLike, n: int) -> DistanceField:
    """
    Load an n×n distance matrix from a CSV file.

    Blank lines after the last row (e.g. a trailing newline) are ignored;
    a blank line between rows is malformed.

    Raises:
        MalformedMatrix: on any row/column count mismatch, unparseable
                         field, or invalid value (negative, non-finite,
                         non-zero diagonal).
        OSError:         if the file cannot be opened.
    """
    rows: List[List[float]] = []
    blank_line_no: Optional[int] = None
    with open(path, encoding="utf-8", newline="") as f:
        for line_no, record in enumerate(csv.reader(f), start=1):
            if not record or all(not cell.strip() for cell in record):
                if blank_line_no is None:
                    blank_line_no = line_no
                continue
            if blank_line_no is not None:
                raise MalformedMatrix(
                    path, "blank line before the last row", line=blank_line_no
                )
            if len(rows) == n:
                raise MalformedMatrix(
                    path, f"expected {n} rows, found more", line=line_no
                )
            if len(record) != n:
                raise MalformedMatrix(
                    path, f"expected {n} fields, found {len(record)}", line=line_no
                )
            rows.append([
                _parse_field(cell, path, line_no, col) for col, cell in enumerate(record)
            ])

    if len(rows) != n:
        raise MalformedMatrix(path, f"expected {n} rows, found {len(rows)}")

    try:
        field = DistanceField(rows)
    except ValueError as exc:
        raise MalformedMatrix(path, str(exc)) from exc

    logger.info("Distance matrix loaded from %s (%dx%d)", path, n, n)
    return field


def _format_value(value: float) -> str:
    if math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def save_distances(path: PathLike, distances: DistanceField) -> None:
    """Write the field as CSV, one row per line, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    matrix = distances.as_matrix()
    with open(target, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, lineterminator="\n")
        for row in matrix:
            writer.writerow([_format_value(v) for v in row])
    logger.info("Distance matrix saved to %s (%dx%d)", target, distances.n, distances.n)
