from __future__ import annotations
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

def configure_logging(level: str = "INFO") -> None:
    """
    Configures the package logger once (idempotent).
    uvicorn keeps its own handlers; only 'recipes_api' is touched here.
    """
    logger = logging.getLogger("recipes_api")
    logger.setLevel(level.upper())
    if any(getattr(h, "_recipes_api", False) for h in logger.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._recipes_api = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.propagate = False
