from __future__ import annotations

import logging

from siteops.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    global _configured
    if _configured:
        return
    settings = get_settings()
    resolved = (level or settings.log_level).upper()
    logging.basicConfig(level=getattr(logging, resolved, logging.INFO), format=LOG_FORMAT)
    # SQL echo is controlled by the engine, keep the pool quiet.
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    _configured = True
