"""Typed reads of environment variables.

A malformed value falls back to the default rather than failing at import
time; ``QuotaConfig`` validates ranges afterwards.
"""

import os
from typing import Callable, List, Optional, TypeVar

T = TypeVar("T")

TRUE_VALUES = ("true", "1", "yes", "on")


def _parse(key: str, default: T, cast: Callable[[str], T]) -> T:
    raw = os.getenv(key)
    if raw is None:
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        return default


def parse_bool_env(key: str, default: bool = True) -> bool:
    """
    True for 'true', '1', 'yes' or 'on' in any case; any other set value is False.

    >>> os.environ["DATABASE_ENABLED"] = "false"
    >>> parse_bool_env("DATABASE_ENABLED")
    False
    """
    return _parse(key, default, lambda raw: raw.lower() in TRUE_VALUES)


def parse_int_env(key: str, default: int) -> int:
    return _parse(key, default, int)


def parse_float_env(key: str, default: float) -> float:
    return _parse(key, default, float)


def parse_str_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Stripped string; blank counts as unset."""
    return _parse(key, default, lambda raw: raw or default)


def parse_list_env(key: str, default: Optional[List[str]] = None) -> List[str]:
    """
    Comma-separated list with blank entries dropped.

    >>> os.environ["CORS_ORIGINS"] = "http://a.test, http://b.test"
    >>> parse_list_env("CORS_ORIGINS")
    ['http://a.test', 'http://b.test']
    """
    return _parse(
        key,
        list(default or []),
        lambda raw: [item.strip() for item in raw.split(",") if item.strip()],
    )
