"""
Entry point: python -m tsp_service

No command-line flags. Configuration comes from TSP_* environment
variables (see tsp_service.shared.models.load_settings); the distance
matrix is loaded from ServiceSettings.matrix_path when that file exists.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from pydantic import ValidationError

from tsp_service.service import TspRunService
from tsp_service.shared.models import load_settings
from tsp_service.storage.matrix_store import MalformedMatrix

logger = logging.getLogger("tsp_service")


def main(environ: Optional[Mapping[str, str]] = None) -> int:
    """Run once; returns the process exit status."""
    try:
        config, settings = load_settings(environ)
    except ValidationError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("Invalid configuration:\n%s", exc)
        return 2

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    service = TspRunService(config, settings)
    try:
        service.run()
    except MalformedMatrix:
        logger.exception("Cannot start: distance matrix is unusable")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
