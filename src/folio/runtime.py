"""Process-wide setup: logging and tracing from a :class:`FolioConfig`."""

from __future__ import annotations

import logging

from folio.config import FolioConfig
from folio.core.logging import configure_logging
from folio.core.telemetry import init_telemetry

logger = logging.getLogger(__name__)

_configured = False


def setup(config: FolioConfig, *, force: bool = False) -> bool:
    """Apply ``[folio.logging]`` and start tracing, once per process.

    :func:`folio.views.create_list_view` calls this for every view; only the
    first call (or one with ``force=True``) has any effect.  Returns True
    when this call configured the process.
    """
    global _configured

    if _configured and not force:
        return False
    configure_logging(config.logging)
    init_telemetry()
    _configured = True
    logger.debug(
        "folio logging configured (level=%s, format=%s)",
        config.logging.level,
        config.logging.format,
    )
    return True


def is_configured() -> bool:
    return _configured


def reset() -> None:
    """Forget a previous :func:`setup` so the next call applies again."""
    global _configured
    _configured = False
