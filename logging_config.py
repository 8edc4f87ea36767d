"""Logging setup shared by the html2pdf command line entry points."""

from __future__ import annotations

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(
    level: str = "INFO", *, to_file: Optional[str] = None
) -> None:
    """Install a single stdout (or file) handler on the root logger."""

    if to_file:
        handler: logging.Handler = logging.FileHandler(
            to_file, encoding="utf-8"
        )
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.addHandler(handler)

    # Playwright's driver chatter drowns the per-page lines.
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("playwright").setLevel(logging.WARNING)


__all__ = ["LOG_FORMAT", "configure_logging"]
