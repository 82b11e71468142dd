"""Root logger setup for the CLI and other entry points."""

from __future__ import annotations

import logging
from typing import Final

# httpx logs every request at INFO; keep those out of normal CLI output.
CHATTY_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore")

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Configure the root logger with a terse format.

    Transport libraries are capped at WARNING unless ``level`` is DEBUG. Pass
    ``force=True`` to replace handlers installed earlier (tests, notebooks).
    """

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
