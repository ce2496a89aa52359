from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None, include_uvicorn: bool = False) -> logging.Logger:
    """Set up root logging once for the headless runner or the server.

    ``level`` wins over ``FLOCKING_LOG_LEVEL``; INFO when neither is given.
    """
    resolved = (level or os.getenv("FLOCKING_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)

    logger = logging.getLogger("flocking")
    logger.setLevel(resolved)
    if include_uvicorn:
        # keep server access logs in step with the simulation's verbosity
        for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
            logging.getLogger(name).setLevel(resolved)
    return logger
