"""Helpers for configuring consistent project logging output."""

from __future__ import annotations

import logging
import os
from typing import Optional

_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_CONFIGURED = False


def resolve_level(level: str | int | None) -> int:
    """Translate ``level`` (name, number or numeric string) into a logging level."""

    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    try:
        return int(level)
    except (TypeError, ValueError):
        normalized = str(level).strip().upper()
        resolved = logging.getLevelName(normalized)
        return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: Optional[str | int] = None, *, force: bool = False) -> None:
    """Initialise root logging handlers for the lexicon service.

    The level comes from ``level`` when given, otherwise from the
    ``LEXICON_LOG_LEVEL`` environment variable, defaulting to ``INFO``.
    Repeated calls are no-ops unless ``force`` is set.
    """

    global _CONFIGURED

    if _CONFIGURED and not force:
        return

    env_level = os.environ.get("LEXICON_LOG_LEVEL")
    resolved_level = resolve_level(level if level is not None else env_level)

    logging.basicConfig(level=resolved_level, format=_DEFAULT_FORMAT, force=force)
    logging.getLogger("phrase_lexicon").setLevel(resolved_level)
    _CONFIGURED = True


__all__ = ["configure_logging", "resolve_level"]
