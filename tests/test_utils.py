"""Tests for date parsing and console formatting."""

import struct
from datetime import datetime, timezone

from gpmf_builder import accl_stream, camera_payload, klv, nest, text
from gpmf_extract.scaled import scaled_data
from gpmf_extract.stream import GpmfStream, Levels
from gpmf_extract.utils import format_sample_line, parse_gpsu


def scaled(payload: bytes, key: str, tolerant: bool = False):
    stream = GpmfStream(payload)
    stream.find_next(key, Levels.RECURSE_LEVELS)
    return scaled_data(stream, tolerant=tolerant)


class TestParseGpsu:
    def test_valid(self):
        assert parse_gpsu("250508104822.180") == datetime(
            2025, 5, 8, 10, 48, 22, 180000, tzinfo=timezone.utc
        )

    def test_padded(self):
        assert parse_gpsu("250508104822.18\x00") == datetime(
            2025, 5, 8, 10, 48, 22, 180000, tzinfo=timezone.utc
        )

    def test_invalid(self):
        assert parse_gpsu("garbage") is None
        assert parse_gpsu("251308104822.180") is None


class TestFormatSampleLine:
    def test_numbers_with_units(self):
        samples = scaled(camera_payload(accl_stream()), "ACCL")
        assert format_sample_line(samples, 0) == (
            "  ACCL 1.000m/s2, 2.000m/s2, 0.500m/s2, "
        )

    def test_string(self):
        samples = scaled(nest("STRM", text("TEXT", "hello")), "TEXT")
        assert format_sample_line(samples, 0) == "  TEXT hello"

    def test_fourcc_and_unknown_elements(self):
        row = b"GPRO" + struct.pack(">h", 5) + b"\x00\x00"
        payload = nest("STRM", text("TYPE", "FsZ"), klv("TEST", "?", 8, 1, row))
        samples = scaled(payload, "TEST", tolerant=True)
        assert format_sample_line(samples, 0) == "  TEST GPRO, 5.000, ?, "
