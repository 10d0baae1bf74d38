"""Test doubles: a scripted socket, a recording notifier and wire-format builders."""
from __future__ import annotations

import json

from mc_statusbot.errors import NotificationDeliveryError
from mc_statusbot.varint import encode_varint, pack_data


def status_response(doc, packet_id: int = 0) -> bytes:
    """Wire bytes of a status response carrying ``doc`` (a dict or raw str)."""
    text = doc if isinstance(doc, str) else json.dumps(doc)
    body = encode_varint(packet_id) + pack_data(text.encode("utf-8"))
    return pack_data(body)


class FakeSocket:
    """Stands in for a connected socket; ``recv`` hands out the scripted bytes in order."""

    def __init__(self, data: bytes, chunk_limit: int | None = None):
        self._data = data
        self._pos = 0
        self._chunk_limit = chunk_limit
        self.sent = []
        self.closed = False
        self.recv_calls = 0
        self.timeouts = []

    def settimeout(self, value):
        self.timeouts.append(value)

    def sendall(self, data):
        self.sent.append(bytes(data))

    def recv(self, n):
        self.recv_calls += 1
        if self._chunk_limit:
            n = min(n, self._chunk_limit)
        chunk = self._data[self._pos:self._pos + n]
        self._pos += len(chunk)
        return chunk

    @property
    def consumed(self):
        return self._pos

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class FakeNotifier:
    def __init__(self, fail_messages=False, fail_titles=False):
        self.messages = []
        self.titles = []
        self.fail_messages = fail_messages
        self.fail_titles = fail_titles

    def send_message(self, text):
        if self.fail_messages:
            raise NotificationDeliveryError("sendMessage: telegram API error 502", status_code=502)
        self.messages.append(text)

    def set_chat_title(self, title):
        if self.fail_titles:
            raise NotificationDeliveryError("setChatTitle: telegram API error 403", status_code=403)
        self.titles.append(title)
