"""Runtime configuration for orgsocial.

Settings are read from environment variables so that the same code runs
unchanged in a TUI client, a cron job, or a test. Every variable is optional;
missing or empty values fall back to the defaults below.

Environment variables:
    ORG_SOCIAL_FETCH_TIMEOUT: Per-source fetch timeout in seconds (default: 30)
    ORG_SOCIAL_MAX_RETRIES: Retries for transient network failures (default: 2)
    ORG_SOCIAL_RETRY_BASE_DELAY: First backoff delay in seconds (default: 1.0)
    ORG_SOCIAL_RETRY_MAX_DELAY: Backoff cap in seconds (default: 10.0)
    ORG_SOCIAL_USER_AGENT: User-Agent header sent with fetches
    ORG_SOCIAL_AUTO_PARSE: "1"/"true"/"yes" or "0"/"false"/"no" (default: true)
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from orgsocial import __version__

DEFAULT_FETCH_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_BASE_DELAY = 1.0
DEFAULT_RETRY_MAX_DELAY = 10.0
DEFAULT_USER_AGENT = f"orgsocial/{__version__}"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Resolved configuration.

    Attributes:
        fetch_timeout: Seconds allowed for each source fetch, independently
        max_retries: Retry attempts for connection errors / read timeouts
        retry_base_delay: Initial backoff delay in seconds
        retry_max_delay: Maximum backoff delay in seconds
        user_agent: User-Agent header for document fetches
        auto_parse: Whether parsed posts tokenize their content on construction
    """
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY
    retry_max_delay: float = DEFAULT_RETRY_MAX_DELAY
    user_agent: str = DEFAULT_USER_AGENT
    auto_parse: bool = True


def _read_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


def _read_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got {raw!r}")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        Settings: Resolved configuration

    Raises:
        ValueError: If a variable is set to a value of the wrong type; the
            message names the offending variable

    Example:
        >>> settings = load_settings({"ORG_SOCIAL_FETCH_TIMEOUT": "5"})
        >>> settings.fetch_timeout
        5.0
    """
    env = os.environ if environ is None else environ

    return Settings(
        fetch_timeout=_read_float(env, "ORG_SOCIAL_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT),
        max_retries=_read_int(env, "ORG_SOCIAL_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        retry_base_delay=_read_float(env, "ORG_SOCIAL_RETRY_BASE_DELAY", DEFAULT_RETRY_BASE_DELAY),
        retry_max_delay=_read_float(env, "ORG_SOCIAL_RETRY_MAX_DELAY", DEFAULT_RETRY_MAX_DELAY),
        user_agent=env.get("ORG_SOCIAL_USER_AGENT", "").strip() or DEFAULT_USER_AGENT,
        auto_parse=_read_bool(env, "ORG_SOCIAL_AUTO_PARSE", True),
    )
