# ============================================================
# mc-statusbot
#
# Watches one Minecraft server, keeps a rolling history of who was on,
# and tells a Telegram chat when players join or leave. The chat title
# mirrors the server state (🟢 someone is playing / 🔴 nobody or down).
#
# Configuration comes from the environment, see mc_statusbot/config.py.
# ============================================================
from __future__ import annotations

import logging
import signal
import sys
import time
from dataclasses import dataclass
from typing import Callable

from mc_statusbot import __version__
from mc_statusbot.config import Settings, load_config
from mc_statusbot.errors import ConfigurationError, NotificationDeliveryError, ProbeError, StorageIOError
from mc_statusbot.log import setup_logging
from mc_statusbot.notifier import TelegramNotifier, chat_title, format_changes
from mc_statusbot.protocol import StatusSample, probe
from mc_statusbot.reconcile import Reconciliation, reconcile
from mc_statusbot.store import StatusStore

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class MonitorContext:
    """Everything a cycle needs, built once at startup."""

    settings: Settings
    store: StatusStore
    notifier: TelegramNotifier
    probe: Callable[[str, int, float], StatusSample] = probe
    sleep: Callable[[float], None] = time.sleep
    clock_ms: Callable[[], int] = now_ms
    monotonic: Callable[[], float] = time.monotonic


# === Check cycle ===

def probe_with_retries(ctx: MonitorContext) -> StatusSample | None:
    s = ctx.settings
    for attempt in range(1, s.max_retries + 1):
        try:
            return ctx.probe(s.server_host, s.server_port, s.probe_timeout)
        except ProbeError as e:
            error = e
        except Exception as e:
            # still a failed attempt; the cycle must record its observation
            logger.exception("[CHECK] Unexpected error in server check attempt %d", attempt)
            error = e
        if attempt < s.max_retries:
            logger.info("[CHECK] Server check attempt %d failed (%s), retrying...", attempt, error)
            ctx.sleep(s.retry_delay)
        else:
            logger.warning("[CHECK] Server check failed after %d attempts: %s", s.max_retries, error)
    return None


def run_check_cycle(ctx: MonitorContext) -> Reconciliation:
    """Probe, reconcile against the last observation, record, notify."""
    latest = ctx.store.latest()
    previous = latest.players if latest else []

    sample = probe_with_retries(ctx)
    result = reconcile(previous, sample)

    try:
        ctx.store.append(result.online, ctx.clock_ms(), result.current_players)
    except StorageIOError as e:
        logger.error("[STORE] %s (keeping the observation in memory)", e)

    if result.reliable and result.changed:
        message = format_changes(result.joined, result.left)
        try:
            ctx.notifier.send_message(message)
        except NotificationDeliveryError as e:
            logger.error("[NOTIFY] Error sending Telegram message: %s", e)

    try:
        ctx.notifier.set_chat_title(chat_title(result.online, ctx.settings.chat_title))
    except NotificationDeliveryError as e:
        logger.error("[NOTIFY] Error updating chat title: %s", e)

    if result.reliable:
        logger.info("[CHECK] Server status: %s, players: %s (joined: %s, left: %s)",
                    "online" if result.online else "offline",
                    ", ".join(result.current_players) or "-",
                    ", ".join(result.joined) or "-",
                    ", ".join(result.left) or "-")
    else:
        logger.info("[CHECK] Server status: %s, %d player(s), names unknown",
                    "online" if result.online else "offline",
                    sample.reported_count if sample and sample.reported_count else 0)
    return result


def run_prune_cycle(ctx: MonitorContext) -> int:
    cutoff = ctx.clock_ms() - ctx.settings.retention_ms
    try:
        removed = ctx.store.prune_older_than(cutoff)
    except StorageIOError as e:
        logger.error("[PRUNE] %s", e)
        return 0
    logger.info("[PRUNE] Removed %d observation(s) older than %s hours", removed, ctx.settings.retention_hours)
    return removed


# === Driver loop ===

def _run_guarded(name: str, fn, ctx: MonitorContext):
    try:
        fn(ctx)
    except Exception:
        # a cycle must never take the loop down
        logger.exception("[ERROR] Unexpected failure in %s cycle", name)


def run_forever(ctx: MonitorContext, max_iterations: int | None = None):
    """Run the check and prune cycles on their own periods, one at a time.

    The next deadline for each cycle is taken from when it finished, so an
    overrunning cycle is never run twice back to back to catch up.
    ``max_iterations`` bounds the loop for tests.
    """
    s = ctx.settings
    _run_guarded("check", run_check_cycle, ctx)
    next_check = ctx.monotonic() + s.check_interval
    next_prune = ctx.monotonic() + s.cleanup_interval

    iterations = 0
    while max_iterations is None or iterations < max_iterations:
        iterations += 1
        wait = min(next_check, next_prune) - ctx.monotonic()
        if wait > 0:
            ctx.sleep(wait)

        if ctx.monotonic() >= next_check:
            _run_guarded("check", run_check_cycle, ctx)
            next_check = ctx.monotonic() + s.check_interval
        if ctx.monotonic() >= next_prune:
            logger.info("[PRUNE] Cleaning up old status entries...")
            _run_guarded("prune", run_prune_cycle, ctx)
            next_prune = ctx.monotonic() + s.cleanup_interval


# === Graceful shutdown ===

def _request_shutdown(signum, frame):
    # The store lock may be held right now, so only unwind here.
    # run_until_stopped flushes once the lock has been released.
    logger.info("[SHUTDOWN] Signal %s received. Saving state...", signum)
    sys.exit(0)


def install_signal_handlers():
    for _sig in (getattr(signal, "SIGINT", None), getattr(signal, "SIGTERM", None)):
        if _sig:
            signal.signal(_sig, _request_shutdown)


def run_until_stopped(ctx: MonitorContext, max_iterations: int | None = None):
    """``run_forever``, flushing the store on the way out however the loop ends."""
    try:
        run_forever(ctx, max_iterations)
    finally:
        try:
            ctx.store.flush()
        except StorageIOError as e:
            logger.error("[SHUTDOWN] %s", e)


def build_context(settings: Settings) -> MonitorContext:
    store = StatusStore(settings.status_file)
    notifier = TelegramNotifier(settings.telegram_token, settings.telegram_chat_id,
                                timeout=settings.http_timeout)
    return MonitorContext(settings=settings, store=store, notifier=notifier)


def main() -> int:
    setup_logging()
    try:
        settings = load_config()
    except ConfigurationError as e:
        logger.error("[ERROR] %s", e)
        return 1
    setup_logging(settings.debug_log_enabled)

    logger.info("[INIT] Starting mc-statusbot v%s, watching %s:%s",
                __version__, settings.server_host, settings.server_port)
    ctx = build_context(settings)
    install_signal_handlers()
    run_until_stopped(ctx)
    return 0


if __name__ == "__main__":
    sys.exit(main())
