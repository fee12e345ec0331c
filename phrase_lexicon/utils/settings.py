"""Runtime settings for the lexicon service.

Resolution order (later wins):
  1. Dataclass defaults
  2. Environment variables (``LEXICON_DB_PATH``, ``LEXICON_GENERATOR_URL``, ...)
  3. Explicit keyword arguments passed to :func:`load_settings`
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, Optional

from .observability import get_logger

_TRUTHY = {"1", "true", "yes", "on"}

_logger = get_logger(__name__).bind(component="settings")


@dataclass(frozen=True)
class LexiconSettings:
    """Knobs shared by the app facade, the UI and the import script."""

    db_path: str = "lexicon.db"
    generator_url: Optional[str] = None
    generator_timeout: float = 30.0
    max_workers: int = 8
    lookup_timeout: Optional[float] = None
    log_level: str = "INFO"
    share: bool = False
    server_port: int = 7860


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in _TRUTHY


def _parse_optional_float(raw: str) -> Optional[float]:
    if not raw.strip():
        return None
    return float(raw)


_ENV_FIELDS: Dict[str, tuple[str, Callable[[str], Any]]] = {
    "db_path": ("LEXICON_DB_PATH", str),
    "generator_url": ("LEXICON_GENERATOR_URL", lambda raw: raw.strip() or None),
    "generator_timeout": ("LEXICON_GENERATOR_TIMEOUT", float),
    "max_workers": ("LEXICON_MAX_WORKERS", int),
    "lookup_timeout": ("LEXICON_LOOKUP_TIMEOUT", _parse_optional_float),
    "log_level": ("LEXICON_LOG_LEVEL", str),
    "share": ("LEXICON_SHARE", _parse_bool),
    "server_port": ("LEXICON_SERVER_PORT", int),
}


def load_settings(environ: Optional[Dict[str, str]] = None, **overrides: Any) -> LexiconSettings:
    """Build :class:`LexiconSettings` from the environment plus ``overrides``.

    Values that fail to parse keep their default and log a warning instead of
    aborting start-up.
    """

    env = os.environ if environ is None else environ
    values: Dict[str, Any] = {}
    for field_name, (env_name, parser) in _ENV_FIELDS.items():
        raw = env.get(env_name)
        if raw is None:
            continue
        try:
            values[field_name] = parser(raw)
        except (TypeError, ValueError):
            _logger.warning(
                "Ignoring invalid setting",
                context={"variable": env_name, "value": raw},
            )

    known = {item.name for item in fields(LexiconSettings)}
    unknown = set(overrides) - known
    if unknown:
        raise TypeError(f"Unknown settings: {', '.join(sorted(unknown))}")
    values.update(overrides)

    settings = replace(LexiconSettings(), **values)
    if settings.max_workers < 1:
        _logger.warning(
            "max_workers must be positive; using 1",
            context={"max_workers": settings.max_workers},
        )
        settings = replace(settings, max_workers=1)
    return settings


__all__ = ["LexiconSettings", "load_settings"]
