"""Unit tests for utils.py and structured logging."""

from __future__ import annotations

import json

import pytest

from qcisync.observability import configure_logging, get_logger
from qcisync.utils import from_hex, keccak256, keccak_hex, to_hex, unix_to_date


def test_keccak_is_not_sha3():
    assert keccak_hex(b"") == "0xc5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    assert keccak256(b"transfer(address,uint256)")[:4].hex() == "a9059cbb"


@pytest.mark.parametrize("value", ["0xdeadbeef", "0XDEADBEEF", "deadbeef"])
def test_from_hex_accepts_optional_prefix(value):
    assert from_hex(value) == b"\xde\xad\xbe\xef"


def test_to_hex():
    assert to_hex(b"") == "0x"
    assert to_hex(b"\x00\xff") == "0x00ff"


@pytest.mark.parametrize(
    "timestamp,expected",
    [(0, None), (-1, None), (1_735_689_600, "2025-01-01"), (1_735_775_999, "2025-01-01")],
)
def test_unix_to_date(timestamp, expected):
    assert unix_to_date(timestamp) == expected


def test_logs_are_json_lines(capsys):
    configure_logging("INFO")
    get_logger("qcisync.test").info("proposals_synced", count=3, skipped=1)

    captured = capsys.readouterr()
    assert captured.out == ""
    line = captured.err.strip().splitlines()[-1]
    event = json.loads(line)
    assert event["event"] == "proposals_synced"
    assert event["count"] == 3
    assert event["level"] == "info"
    assert "timestamp" in event


def test_level_filtering(capsys):
    configure_logging("warning")
    log = get_logger("qcisync.test")
    log.info("hidden")
    log.warning("shown")

    out = capsys.readouterr().err
    assert "hidden" not in out
    assert "shown" in out
