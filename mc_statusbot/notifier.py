"""Telegram delivery: change messages and the online/offline chat title."""
from __future__ import annotations

import logging
from typing import Sequence

import requests
from requests.adapters import HTTPAdapter

from mc_statusbot import __version__
from mc_statusbot.errors import NotificationDeliveryError

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
ONLINE_MARK = "\U0001F7E2"   # green circle
OFFLINE_MARK = "\U0001F534"  # red circle
JOIN_MARK = "\U0001F60E"     # smiling face with sunglasses
LEAVE_MARK = "\U0001F97A"    # pleading face

_HTML_ESCAPES = (
    ("&", "&amp;"),  # first, so the other entities are not double-escaped
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#39;"),
)


def escape_html(text: str) -> str:
    for ch, entity in _HTML_ESCAPES:
        text = text.replace(ch, entity)
    return text


def bold(text: str) -> str:
    return f"<b>{escape_html(text)}</b>"


def format_changes(joined: Sequence[str], left: Sequence[str]) -> str:
    """Build the HTML message announcing who joined and who left; empty when nothing changed."""
    lines = []
    if len(joined) == 1:
        lines.append(f"{JOIN_MARK} {bold(joined[0])} joined the server")
    elif joined:
        lines.append(f"{JOIN_MARK} joined the server: " + ", ".join(bold(p) for p in joined))
    if len(left) == 1:
        lines.append(f"{LEAVE_MARK} {bold(left[0])} left")
    elif left:
        lines.append(f"{LEAVE_MARK} left: " + ", ".join(bold(p) for p in left))
    return "\n".join(lines)


def chat_title(online: bool, text: str) -> str:
    return f"{ONLINE_MARK if online else OFFLINE_MARK} {text}"


def make_session() -> requests.Session:
    session = requests.Session()
    session.mount("https://", HTTPAdapter(pool_connections=2, pool_maxsize=4))
    session.mount("http://", HTTPAdapter(pool_connections=2, pool_maxsize=4))
    session.headers.update({"User-Agent": f"mc-statusbot/{__version__}"})
    return session


class TelegramNotifier:
    """Best-effort Telegram Bot API client bound to one chat.

    Every call is a single POST; nothing is retried.  Transport failures and
    non-2xx answers raise ``NotificationDeliveryError`` for the caller to log.
    """

    def __init__(self, token: str, chat_id: str, *, timeout: float = 10,
                 session: requests.Session | None = None, api_base: str = TELEGRAM_API_BASE):
        self._token = token
        self.chat_id = chat_id
        self.timeout = timeout
        self.session = session or make_session()
        self.api_base = api_base.rstrip("/")

    def _url(self, method: str) -> str:
        return f"{self.api_base}/bot{self._token}/{method}"

    def _post(self, method: str, payload: dict) -> requests.Response:
        try:
            resp = self.session.post(self._url(method), json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            # the exception text can carry the URL, and the URL carries the token
            raise NotificationDeliveryError(f"{method}: request failed: {type(e).__name__}") from e
        if not 200 <= resp.status_code < 300:
            raise NotificationDeliveryError(
                f"{method}: telegram API error {resp.status_code} - {resp.text[:180]}",
                status_code=resp.status_code,
            )
        return resp

    def send_message(self, text: str):
        self._post("sendMessage", {"chat_id": self.chat_id, "text": text, "parse_mode": "HTML"})
        logger.info("[NOTIFY] Sent message to chat %s", self.chat_id)

    def set_chat_title(self, title: str):
        try:
            self._post("setChatTitle", {"chat_id": self.chat_id, "title": title})
        except NotificationDeliveryError as e:
            # Telegram answers 400 when the title already matches
            if e.status_code == 400 and "not modified" in str(e).lower():
                logger.debug("[NOTIFY] Chat title already %r", title)
                return
            raise
        logger.debug("[NOTIFY] Chat title set to %r", title)
