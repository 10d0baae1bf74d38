"""Minimal server-list-ping client.

Only the status half of the protocol is spoken: handshake with next-state 1,
an empty status request, then a single length-prefixed JSON response.
"""
from __future__ import annotations

import json
import logging
import socket
import struct
import time
from dataclasses import dataclass, field

from mc_statusbot.errors import (
    InvalidPayloadError,
    InvalidResponseSizeError,
    InvalidVersionFieldError,
    UnreachableError,
)
from mc_statusbot.varint import BufferSource, SocketSource, decode_varint, encode_varint, pack_data

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = 47
NEXT_STATE_STATUS = 1
PACKET_ID = 0
MAX_RESPONSE_BYTES = 65535


@dataclass(frozen=True)
class StatusSample:
    reachable: bool
    reported_count: int | None = None
    sampled_names: list[str] = field(default_factory=list)
    version: str | None = None


def build_handshake(host: str, port: int) -> bytes:
    host_bytes = host.encode("utf-8")
    body = (
        encode_varint(PACKET_ID)
        + encode_varint(PROTOCOL_VERSION)
        + pack_data(host_bytes)
        + struct.pack(">H", port)
        + encode_varint(NEXT_STATE_STATUS)
    )
    return pack_data(body)


def build_status_request() -> bytes:
    return pack_data(encode_varint(PACKET_ID))


def read_response(source: SocketSource) -> bytes:
    """Read one length-prefixed packet off the wire and return its body."""
    size = decode_varint(source)
    if size <= 0 or size > MAX_RESPONSE_BYTES:
        raise InvalidResponseSizeError(size)
    return source.read_exact(size)


def parse_status_body(body: bytes) -> dict:
    buf = BufferSource(body)
    decode_varint(buf)  # packet id
    json_len = decode_varint(buf)
    if json_len < 0:
        raise InvalidPayloadError(f"negative JSON length: {json_len}")
    raw = buf.read_exact(json_len)
    try:
        doc = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidPayloadError(f"failed to parse JSON response: {e}") from e
    except RecursionError as e:
        raise InvalidPayloadError("JSON response nested too deeply") from e
    if not isinstance(doc, dict):
        raise InvalidPayloadError(f"status document is a {type(doc).__name__}, not an object")
    return doc


def sample_from_document(doc: dict) -> StatusSample:
    version = doc.get("version")
    name = version.get("name") if isinstance(version, dict) else None
    if not isinstance(name, str) or not name:
        raise InvalidVersionFieldError("invalid server response: missing or empty version name")

    count = None
    names: list[str] = []
    players = doc.get("players")
    if isinstance(players, dict):
        online = players.get("online")
        # bool is an int subclass; a JSON true is not a player count
        if isinstance(online, int) and not isinstance(online, bool):
            count = online
        elif isinstance(online, float) and online.is_integer():
            count = int(online)
        sample = players.get("sample")
        if isinstance(sample, list):
            for entry in sample:
                if isinstance(entry, dict) and isinstance(entry.get("name"), str):
                    names.append(entry["name"])

    return StatusSample(reachable=True, reported_count=count, sampled_names=names, version=name)


def _send(sock: socket.socket, data: bytes, deadline: float):
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise UnreachableError("timed out sending request")
    sock.settimeout(remaining)
    try:
        sock.sendall(data)
    except OSError as e:
        raise UnreachableError(f"send failed: {e}") from e


def probe(host: str, port: int, timeout: float) -> StatusSample:
    """Query ``host:port`` once. Raises a ``ProbeError`` subclass on any failure."""
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as e:
        raise UnreachableError(f"connect to {host}:{port} failed: {e}") from e

    with sock:
        deadline = time.monotonic() + timeout
        for packet in (build_handshake(host, port), build_status_request()):
            _send(sock, packet, deadline)

        body = read_response(SocketSource(sock, deadline))
        doc = parse_status_body(body)

    sample = sample_from_document(doc)
    logger.debug("[PROBE] %s:%s version=%s online=%s sample=%s",
                 host, port, sample.version, sample.reported_count, sample.sampled_names)
    return sample
