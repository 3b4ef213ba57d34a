"""Configuración de logging.

Todos los módulos loguean con `logging.getLogger("doublezero_version_sync.<componente>")`;
aquí solo se instala el handler sobre el logger raíz del paquete.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "doublezero_version_sync"

_PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def get_logger(component: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAME}.{component}")


def configure_logging(level: str = "info", fmt: str = "text", *, console: Console | None = None) -> logging.Logger:
    """Instala un único handler (idempotente) y devuelve el logger del paquete."""

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler: logging.Handler
    if fmt == "plain":
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
    else:
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=False,
            log_time_format="[%Y-%m-%d %H:%M:%S]",
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False

    # httpx loguea cada request a INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logger
