"""VarInt codec used by the Minecraft server-list-ping protocol.

Values are written 7 bits at a time, least significant group first, with the
continuation bit (0x80) set on every byte except the last.  Decoding works on
anything that exposes ``read_byte()``; two sources ship here, one over an
in-memory buffer and one over a connected socket.
"""
from __future__ import annotations

import socket
import time
from typing import Protocol

from mc_statusbot.errors import MalformedVarintError, TruncatedResponseError

MAX_VARINT_BYTES = 5
_SEGMENT_BITS = 0x7F
_CONTINUE_BIT = 0x80


class ByteSource(Protocol):
    def read_byte(self) -> int:
        """Return the next byte, raising ``EOFError`` once the source is exhausted."""


class BufferSource:
    """Byte source over a fixed ``bytes`` buffer."""

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._pos = 0

    def read_byte(self) -> int:
        if self._pos >= len(self._data):
            raise EOFError("buffer exhausted")
        b = self._data[self._pos]
        self._pos += 1
        return b

    def read_exact(self, n: int) -> bytes:
        if n > self.remaining:
            raise TruncatedResponseError(f"wanted {n} bytes, only {self.remaining} left in response")
        chunk = self._data[self._pos:self._pos + n]
        self._pos += n
        return chunk

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos


class SocketSource:
    """Byte source over a connected stream socket, bounded by an absolute deadline.

    ``deadline`` is a ``time.monotonic()`` value; every receive gets whatever
    time is left until it, so the whole exchange shares a single budget.
    """

    def __init__(self, sock: socket.socket, deadline: float):
        self._sock = sock
        self._deadline = deadline

    def _recv(self, n: int) -> bytes:
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            raise TruncatedResponseError("timed out waiting for response")
        self._sock.settimeout(remaining)
        try:
            return self._sock.recv(n)
        except socket.timeout as e:
            raise TruncatedResponseError("timed out waiting for response") from e
        except OSError as e:
            raise TruncatedResponseError(f"read failed: {e}") from e

    def read_byte(self) -> int:
        data = self._recv(1)
        if not data:
            raise EOFError("connection closed")
        return data[0]

    def read_exact(self, n: int) -> bytes:
        # The transport may hand back fewer bytes than asked for; keep reading.
        buf = bytearray()
        while len(buf) < n:
            chunk = self._recv(n - len(buf))
            if not chunk:
                raise TruncatedResponseError(f"connection closed after {len(buf)} of {n} bytes")
            buf += chunk
        return bytes(buf)


def encode_varint(value: int) -> bytes:
    """Encode a 32-bit integer; negative values are written as their two's-complement bit pattern."""
    value &= 0xFFFFFFFF
    out = bytearray()
    while True:
        if value & ~_SEGMENT_BITS == 0:
            out.append(value)
            return bytes(out)
        out.append((value & _SEGMENT_BITS) | _CONTINUE_BIT)
        value >>= 7


def decode_varint(source: ByteSource) -> int:
    result = 0
    for shift in range(0, 7 * MAX_VARINT_BYTES, 7):
        try:
            b = source.read_byte()
        except EOFError as e:
            raise MalformedVarintError("source ended inside a varint") from e
        result |= (b & _SEGMENT_BITS) << shift
        if not b & _CONTINUE_BIT:
            result &= 0xFFFFFFFF
            # reinterpret as int32
            return result - (1 << 32) if result & 0x80000000 else result
    raise MalformedVarintError(f"varint longer than {MAX_VARINT_BYTES} bytes")


def pack_data(payload: bytes) -> bytes:
    """Prefix ``payload`` with its varint-encoded length."""
    return encode_varint(len(payload)) + payload
