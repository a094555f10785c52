"""Root logger configuration for the diagnostic (stdlib) log."""
from __future__ import annotations

import logging
from typing import Optional

from core.config.config_service import LoggingConfig

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(cfg: Optional[LoggingConfig] = None) -> None:
    """Set the root level from config; installs a stream handler once."""
    level_name = (cfg.level if cfg else "INFO").strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)

    # pyHanko is chatty at INFO about things we do on purpose
    logging.getLogger("pyhanko").setLevel(max(level, logging.WARNING))
