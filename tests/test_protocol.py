from __future__ import annotations

import struct

import pytest

from mc_statusbot import protocol
from mc_statusbot.errors import (
    InvalidPayloadError,
    InvalidResponseSizeError,
    InvalidVersionFieldError,
    MalformedVarintError,
    TruncatedResponseError,
    UnreachableError,
)
from mc_statusbot.protocol import StatusSample, build_handshake, build_status_request, probe
from mc_statusbot.varint import encode_varint
from helpers import FakeSocket, status_response

DOC = {
    "version": {"name": "1.20.4", "protocol": 765},
    "players": {
        "max": 20,
        "online": 2,
        "sample": [
            {"name": "Alice", "id": "00000000-0000-0000-0000-000000000001"},
            {"name": "Bob", "id": "00000000-0000-0000-0000-000000000002"},
        ],
    },
    "description": {"text": "A Minecraft Server"},
}


@pytest.fixture
def connect(monkeypatch):
    """Route ``socket.create_connection`` in the protocol module to a FakeSocket."""
    state = {}

    def install(data: bytes, chunk_limit=None, error=None):
        sock = FakeSocket(data, chunk_limit=chunk_limit)

        def fake_create_connection(address, timeout=None):
            state["address"] = address
            state["timeout"] = timeout
            if error is not None:
                raise error
            return sock

        monkeypatch.setattr(protocol.socket, "create_connection", fake_create_connection)
        state["sock"] = sock
        return state

    return install


def test_handshake_layout():
    packet = build_handshake("localhost", 25565)
    body = (
        b"\x00"             # packet id
        + b"\x2f"           # protocol 47
        + b"\x09localhost"
        + struct.pack(">H", 25565)
        + b"\x01"           # next state: status
    )
    assert packet == encode_varint(len(body)) + body


def test_status_request_is_a_single_empty_packet():
    assert build_status_request() == b"\x01\x00"


def test_probe_parses_players(connect):
    state = connect(status_response(DOC))

    sample = probe("mc.example.org", 25565, timeout=3)

    assert sample == StatusSample(reachable=True, reported_count=2,
                                  sampled_names=["Alice", "Bob"], version="1.20.4")
    assert state["address"] == ("mc.example.org", 25565)
    assert state["timeout"] == 3
    assert state["sock"].sent == [build_handshake("mc.example.org", 25565), build_status_request()]
    assert state["sock"].closed


def test_probe_handles_partial_reads(connect):
    state = connect(status_response(DOC), chunk_limit=7)

    sample = probe("mc.example.org", 25565, timeout=3)

    assert sample.sampled_names == ["Alice", "Bob"]
    assert state["sock"].recv_calls > 5


def test_probe_without_sample_or_count(connect):
    connect(status_response({"version": {"name": "Paper 1.21"}}))

    sample = probe("mc.example.org", 25565, timeout=3)

    assert sample.reachable
    assert sample.reported_count is None
    assert sample.sampled_names == []


def test_probe_ignores_malformed_sample_entries(connect):
    doc = {"version": {"name": "1.8"},
           "players": {"online": 3, "sample": [{"name": "Alice"}, "bogus", {"id": "x"}, {"name": 5}]}}
    connect(status_response(doc))

    sample = probe("mc.example.org", 25565, timeout=3)

    assert sample.reported_count == 3
    assert sample.sampled_names == ["Alice"]


def test_connection_refused_is_unreachable(connect):
    state = connect(b"", error=ConnectionRefusedError(111, "Connection refused"))

    with pytest.raises(UnreachableError):
        probe("mc.example.org", 25565, timeout=3)
    assert not state["sock"].closed  # never handed out


def test_oversized_length_rejected_without_reading_body(connect):
    state = connect(encode_varint(70000) + b"x" * 100)

    with pytest.raises(InvalidResponseSizeError) as excinfo:
        probe("mc.example.org", 25565, timeout=3)

    assert excinfo.value.size == 70000
    assert state["sock"].consumed == len(encode_varint(70000))
    assert state["sock"].closed


@pytest.mark.parametrize("declared", [0, -5])
def test_non_positive_length_rejected(connect, declared):
    connect(encode_varint(declared))

    with pytest.raises(InvalidResponseSizeError):
        probe("mc.example.org", 25565, timeout=3)


def test_body_shorter_than_declared_is_truncated(connect):
    full = status_response(DOC)
    state = connect(full[:-10])

    with pytest.raises(TruncatedResponseError):
        probe("mc.example.org", 25565, timeout=3)
    assert state["sock"].closed


def test_connection_closed_before_length(connect):
    connect(b"")

    with pytest.raises(MalformedVarintError):
        probe("mc.example.org", 25565, timeout=3)


@pytest.mark.parametrize(
    "doc",
    [
        {"players": {"online": 1}},
        {"version": {}},
        {"version": {"name": ""}},
        {"version": "1.20"},
        {"version": {"name": 47}},
    ],
)
def test_missing_or_empty_version_name(connect, doc):
    connect(status_response(doc))

    with pytest.raises(InvalidVersionFieldError):
        probe("mc.example.org", 25565, timeout=3)


def test_garbage_json_is_invalid_payload(connect):
    connect(status_response("{not json"))

    with pytest.raises(InvalidPayloadError):
        probe("mc.example.org", 25565, timeout=3)


def test_json_array_is_invalid_payload(connect):
    connect(status_response("[1, 2]"))

    with pytest.raises(InvalidPayloadError):
        probe("mc.example.org", 25565, timeout=3)


def test_deeply_nested_json_is_invalid_payload(connect):
    connect(status_response("[" * 60000))

    with pytest.raises(InvalidPayloadError, match="nested"):
        probe("mc.example.org", 25565, timeout=3)


class SteppingClock:
    """``time.monotonic`` stand-in returning the scripted readings, then repeating the last."""

    def __init__(self, *readings):
        self.readings = list(readings)

    def __call__(self):
        return self.readings.pop(0) if len(self.readings) > 1 else self.readings[0]


def test_sends_share_the_overall_deadline(connect, monkeypatch):
    state = connect(status_response(DOC))
    monkeypatch.setattr(protocol.time, "monotonic", SteppingClock(100.0, 100.5, 101.0))

    probe("mc.example.org", 25565, timeout=3)

    assert state["sock"].timeouts[:2] == [2.5, 2.0]
    assert all(t <= 2.0 for t in state["sock"].timeouts[2:])


def test_send_after_deadline_is_unreachable(connect, monkeypatch):
    state = connect(status_response(DOC))
    monkeypatch.setattr(protocol.time, "monotonic", SteppingClock(100.0, 104.0))

    with pytest.raises(UnreachableError, match="timed out"):
        probe("mc.example.org", 25565, timeout=3)

    assert state["sock"].sent == []
    assert state["sock"].closed


def test_json_length_past_end_of_body(connect):
    body = encode_varint(0) + encode_varint(500) + b'{"version": {"name": "x"}}'
    connect(encode_varint(len(body)) + body)

    with pytest.raises(TruncatedResponseError):
        probe("mc.example.org", 25565, timeout=3)
