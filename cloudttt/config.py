"""
runtime settings, read from the environment by the launcher
"""
import os
from dataclasses import dataclass

from .errors import ConfigurationError

DEFAULT_POLL_INTERVAL = 3.0        # seconds between store polls
DEFAULT_HEARTBEAT_INTERVAL = 5.0
DEFAULT_OFFLINE_THRESHOLD = 10.0   # ping difference that flags the opponent
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_TERMINAL_POLL_LIMIT = 20   # polls after game over before the loop pauses


@dataclass(frozen=True)
class Settings:
    """
    store endpoint, loop timings and push mode
    """
    store_url: str = ""
    api_token: str = ""
    poll_interval: float = DEFAULT_POLL_INTERVAL
    heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL
    offline_threshold: float = DEFAULT_OFFLINE_THRESHOLD
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    terminal_poll_limit: int = DEFAULT_TERMINAL_POLL_LIMIT
    conditional_push: bool = False
    log_level: str = "INFO"

    @property
    def local_mode(self):
        # no store url: both players on this machine
        return not self.store_url


def env_flag(name, default=False, environ=None):
    """
    truthy/falsey env value, default when unset
    """
    env = os.environ if environ is None else environ
    val = env.get(name, "").strip().lower()
    if not val:
        return default
    return val in ("1", "true", "yes", "on")


def env_seconds(name, default, environ=None):
    env = os.environ if environ is None else environ
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number of seconds, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def env_count(name, default, environ=None):
    env = os.environ if environ is None else environ
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a whole number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings(environ=None):
    """
    CLOUDTTT_* variables -> Settings
    raises ConfigurationError on values it can't use
    """
    env = os.environ if environ is None else environ
    return Settings(
        store_url=env.get("CLOUDTTT_STORE_URL", "").strip().rstrip("/"),
        api_token=env.get("CLOUDTTT_API_TOKEN", "").strip(),
        poll_interval=env_seconds("CLOUDTTT_POLL_INTERVAL", DEFAULT_POLL_INTERVAL, env),
        heartbeat_interval=env_seconds("CLOUDTTT_HEARTBEAT_INTERVAL", DEFAULT_HEARTBEAT_INTERVAL, env),
        offline_threshold=env_seconds("CLOUDTTT_OFFLINE_THRESHOLD", DEFAULT_OFFLINE_THRESHOLD, env),
        request_timeout=env_seconds("CLOUDTTT_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, env),
        terminal_poll_limit=env_count("CLOUDTTT_TERMINAL_POLL_LIMIT", DEFAULT_TERMINAL_POLL_LIMIT, env),
        conditional_push=env_flag("CLOUDTTT_CONDITIONAL_PUSH", default=False, environ=env),
        log_level=env.get("CLOUDTTT_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
