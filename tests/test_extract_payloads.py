"""Tests for multi-payload extraction runs."""

import struct

import numpy as np
import pytest

from gpmf_builder import accl_stream, camera_payload, gps5_stream, klv, nest
from gpmf_extract.errors import CorruptError
from gpmf_extract.extraction_data import ExtractionStatus, FailureKind
from gpmf_extract.processing.extract_payloads import extract_payload, extract_samples
from gpmf_extract.processing.payload_source import MemoryPayloadSource

GOOD = camera_payload(gps5_stream(), accl_stream())
# DEVC declares more data than the payload holds
CORRUPT = struct.pack(">4scBH", b"DEVC", b"\x00", 1, 400) + b"\x00" * 16
UNKNOWN = camera_payload(nest("STRM", klv("ACCL", "Z", 2, 1, b"\x00\x01")))
# A complex record without TYPE next to a valid ACCL stream
BAD_STREAM = camera_payload(
    nest("STRM", klv("TEST", "?", 4, 1, b"\x00" * 4)), accl_stream()
)


class TestExtractPayload:
    def test_selected_fourcc(self):
        found = extract_payload(GOOD, "ACCL")
        assert [s.key for s in found] == ["ACCL"]
        np.testing.assert_allclose(found[0].values[1], [2.56, 0.1, 0.2])

    def test_all_streams(self):
        found = extract_payload(GOOD)
        assert [s.key for s in found] == ["GPS5", "ACCL"]

    def test_missing_fourcc(self):
        assert extract_payload(GOOD, "GYRO") == []

    def test_empty_record_skipped(self):
        payload = camera_payload(nest("STRM", klv("ACCL", "s", 6, 0)))
        assert extract_payload(payload, "ACCL") == []

    def test_corruption_strict(self):
        with pytest.raises(CorruptError):
            extract_payload(CORRUPT, "ACCL", tolerant=False)

    def test_corruption_tolerant(self):
        assert extract_payload(CORRUPT, "ACCL", tolerant=True) == []

    def test_bad_stream_keeps_other_streams(self):
        errors = []
        found = extract_payload(BAD_STREAM, None, tolerant=True, stream_errors=errors)
        assert [s.key for s in found] == ["ACCL"]
        assert [key for key, _ in errors] == ["TEST"]
        assert isinstance(errors[0][1], CorruptError)

    def test_bad_stream_strict(self):
        found = extract_payload(BAD_STREAM, None, tolerant=False)
        assert [s.key for s in found] == ["ACCL"]


class TestExtractSamples:
    def test_ok(self):
        source = MemoryPayloadSource([GOOD, GOOD], durations=[1.0, 1.001])
        results, report = extract_samples(source, "ACCL")
        assert report.status == ExtractionStatus.OK
        assert report.payloads_attempted == 2
        assert report.payloads_with_data == 2
        assert report.sample_counts == {"ACCL": 4}
        assert [r.payload_index for r in results] == [0, 1]
        assert results[1].start_s == 1.0
        assert results[1].end_s == pytest.approx(2.001)

    def test_failing_payload_isolated(self):
        source = MemoryPayloadSource([GOOD, CORRUPT, GOOD])
        results, report = extract_samples(source, "ACCL", tolerant=False)
        assert report.status == ExtractionStatus.PARTIAL
        assert report.payloads_failed == 1
        assert report.failures[0].index == 1
        assert report.failures[0].kind == FailureKind.CORRUPT
        assert [r.payload_index for r in results] == [0, 2]

    def test_no_data(self):
        _, report = extract_samples(MemoryPayloadSource([GOOD]), "GYRO")
        assert report.status == ExtractionStatus.NO_DATA
        assert report.fourcc == "GYRO"
        assert not report.failures

    def test_corrupt(self):
        source = MemoryPayloadSource([CORRUPT, CORRUPT])
        _, report = extract_samples(source, "ACCL", tolerant=False)
        assert report.status == ExtractionStatus.CORRUPT
        assert not report.has_unknown_types

    def test_undersized_payload(self):
        _, report = extract_samples(MemoryPayloadSource([b"DEVC"]), "ACCL")
        assert report.status == ExtractionStatus.CORRUPT

    def test_unknown_type(self):
        _, report = extract_samples(MemoryPayloadSource([UNKNOWN]), "ACCL")
        assert report.status == ExtractionStatus.CORRUPT
        assert report.has_unknown_types
        assert report.failures[0].kind == FailureKind.UNKNOWN_TYPE
        assert report.failures[0].key == "ACCL"

    def test_failing_stream_isolated(self):
        source = MemoryPayloadSource([BAD_STREAM, GOOD])
        results, report = extract_samples(source)
        assert report.status == ExtractionStatus.PARTIAL
        assert report.payloads_with_data == 2
        assert report.payloads_failed == 1
        failure = report.failures[0]
        assert (failure.index, failure.key, failure.kind) == (
            0,
            "TEST",
            FailureKind.CORRUPT,
        )
        assert report.sample_counts == {"ACCL": 4, "GPS5": 1}
        assert [r.samples.key for r in results] == ["ACCL", "GPS5", "ACCL"]

    def test_empty_source(self):
        results, report = extract_samples(MemoryPayloadSource([]))
        assert results == []
        assert report.status == ExtractionStatus.NO_DATA


class TestMemoryPayloadSource:
    def test_time_ranges(self):
        source = MemoryPayloadSource([b"a", b"bb", b"ccc"], durations=[0.5, 1.0, 2.0])
        assert source.payload_count() == 3
        assert source.payload_size(2) == 3
        assert source.payload_time_range(0) == (0.0, 0.5)
        assert source.payload_time_range(2) == (1.5, 3.5)
        assert bytes(source.payload_bytes(1)) == b"bb"

    def test_durations_must_match(self):
        with pytest.raises(ValueError):
            MemoryPayloadSource([b"a"], durations=[1.0, 2.0])

    def test_index_error(self):
        with pytest.raises(IndexError):
            MemoryPayloadSource([b"a"]).payload_bytes(1)
