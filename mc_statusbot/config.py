"""Process configuration, read from the environment once at startup.

Required:
  SERVER_HOST          Minecraft server to watch
  TELEGRAM_BOT_TOKEN   bot token from @BotFather
  TELEGRAM_CHAT_ID     chat that receives messages and title updates

Everything else has a default (see ``Settings``).
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from mc_statusbot.errors import ConfigurationError

DEFAULT_PORT = 25565


@dataclass(frozen=True)
class Settings:
    server_host: str
    telegram_token: str
    telegram_chat_id: str
    server_port: int = DEFAULT_PORT

    status_file: str = "status.json"
    chat_title: str = "minecraft server"   # shown after the 🟢/🔴 marker

    check_interval: float = 30             # seconds between check cycles
    cleanup_interval: float = 24 * 60 * 60 # seconds between prune cycles
    retention_hours: float = 24            # history older than this is pruned
    max_retries: int = 3                   # probe attempts per cycle
    retry_delay: float = 3                 # seconds between attempts
    probe_timeout: float = 3               # deadline for one probe
    http_timeout: float = 10               # Telegram request timeout
    debug_log_enabled: bool = False        # also write DEBUG logs to debug.log

    @property
    def retention_ms(self) -> int:
        return int(self.retention_hours * 60 * 60 * 1000)


def _get(env: Mapping[str, str], key: str) -> str:
    return (env.get(key) or "").strip()


def _get_number(env, key, default, cast=float, minimum=None):
    raw = _get(env, key)
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from None
    if minimum is not None and value < minimum:
        raise ConfigurationError(f"{key} must be at least {minimum}, got {value}")
    return value


def _get_flag(env, key) -> bool:
    return _get(env, key).lower() in ("1", "true", "yes", "on")


def load_config(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ

    missing = [k for k in ("SERVER_HOST", "TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID") if not _get(env, k)]
    if missing:
        raise ConfigurationError(f"missing required environment variable(s): {', '.join(missing)}")

    port = _get_number(env, "SERVER_PORT", DEFAULT_PORT, cast=int, minimum=1)
    if port > 65535:
        raise ConfigurationError(f"SERVER_PORT must be at most 65535, got {port}")

    return Settings(
        server_host=_get(env, "SERVER_HOST"),
        server_port=port,
        telegram_token=_get(env, "TELEGRAM_BOT_TOKEN"),
        telegram_chat_id=_get(env, "TELEGRAM_CHAT_ID"),
        status_file=_get(env, "STATUS_FILE") or Settings.status_file,
        chat_title=_get(env, "CHAT_TITLE") or Settings.chat_title,
        check_interval=_get_number(env, "CHECK_INTERVAL_SECONDS", Settings.check_interval, minimum=1),
        cleanup_interval=_get_number(env, "CLEANUP_INTERVAL_SECONDS", Settings.cleanup_interval, minimum=1),
        retention_hours=_get_number(env, "RETENTION_HOURS", Settings.retention_hours, minimum=0),
        max_retries=_get_number(env, "MAX_RETRIES", Settings.max_retries, cast=int, minimum=1),
        retry_delay=_get_number(env, "RETRY_DELAY_SECONDS", Settings.retry_delay, minimum=0),
        probe_timeout=_get_number(env, "PROBE_TIMEOUT_SECONDS", Settings.probe_timeout, minimum=0.1),
        http_timeout=_get_number(env, "HTTP_TIMEOUT_SECONDS", Settings.http_timeout, minimum=0.1),
        debug_log_enabled=_get_flag(env, "DEBUG_LOG_ENABLED"),
    )
