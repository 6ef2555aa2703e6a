"""Tests for unit, TYPE and SCAL lookup and structure layout."""

import struct

import pytest

from gpmf_builder import accl_stream, camera_payload, gps5_stream, klv, nest, scal, text
from gpmf_extract.annotations import (
    ElementSlot,
    build_layout,
    elements_in_struct,
    resolve_annotations,
    resolve_complex_type,
    resolve_scale,
    resolve_units,
)
from gpmf_extract.errors import AnnotationOverflowError, CorruptError
from gpmf_extract.stream import GpmfStream, Levels

RECURSE = Levels.RECURSE_LEVELS


def at(payload: bytes, key: str) -> GpmfStream:
    stream = GpmfStream(payload)
    assert stream.find_next(key, RECURSE) is not None
    return stream


class TestUnits:
    def test_siun(self):
        assert resolve_units(at(camera_payload(accl_stream()), "ACCL")) == ("m/s2",)

    def test_unit_per_element(self):
        units = resolve_units(at(camera_payload(gps5_stream()), "GPS5"))
        assert units == ("deg", "deg", "m", "m/s", "m/s")

    def test_siun_preferred_over_unit(self):
        payload = nest(
            "STRM",
            text("UNIT", "g"),
            text("SIUN", "m/s2"),
            klv("ACCL", "s", 2, 1, b"\x00\x01"),
        )
        assert resolve_units(at(payload, "ACCL")) == ("m/s2",)

    def test_empty_siun_falls_back_to_unit(self):
        payload = nest(
            "STRM",
            text("UNIT", "g"),
            klv("SIUN", "c", 0, 0),
            klv("ACCL", "s", 2, 1, b"\x00\x01"),
        )
        assert resolve_units(at(payload, "ACCL")) == ("g",)

    def test_no_units(self):
        payload = nest("STRM", klv("TMPC", "f", 4, 1, b"\x00" * 4))
        assert resolve_units(at(payload, "TMPC")) == ()

    def test_units_of_sibling_stream_not_used(self):
        gyro = nest("STRM", klv("GYRO", "s", 2, 1, b"\x00\x01"))
        assert resolve_units(at(camera_payload(accl_stream(), gyro), "GYRO")) == ()

    def test_too_many_units(self):
        payload = nest(
            "STRM",
            klv("SIUN", "c", 1, 65, b"m" * 65),
            klv("ACCL", "s", 2, 1, b"\x00\x01"),
        )
        with pytest.raises(AnnotationOverflowError):
            resolve_units(at(payload, "ACCL"))

    def test_lookup_leaves_cursor_in_place(self):
        stream = at(camera_payload(accl_stream()), "ACCL")
        resolve_annotations(stream)
        assert stream.record.key == "ACCL"


class TestScale:
    def test_single_divisor(self):
        assert resolve_scale(at(camera_payload(accl_stream()), "ACCL")) == (100.0,)

    def test_per_element_divisors(self):
        scale = resolve_scale(at(camera_payload(gps5_stream()), "GPS5"))
        assert scale == (1e7, 1e7, 1000.0, 1000.0, 100.0)

    def test_missing_scale_is_one(self):
        payload = nest("STRM", klv("TMPC", "f", 4, 1, b"\x00" * 4))
        assert resolve_scale(at(payload, "TMPC")) == (1.0,)

    def test_zero_divisor_is_one(self):
        payload = nest("STRM", scal(0, 10), klv("TEST", "s", 4, 1, b"\x00" * 4))
        assert resolve_scale(at(payload, "TEST")) == (1.0, 10.0)

    def test_non_numeric_scale(self):
        payload = nest("STRM", text("SCAL", "abcd"), klv("TEST", "s", 2, 1, b"\x00\x01"))
        with pytest.raises(CorruptError):
            resolve_scale(at(payload, "TEST"))


class TestComplexType:
    def test_expanded(self):
        payload = nest(
            "STRM",
            text("TYPE", "f[3]L"),
            klv("TEST", "?", 16, 1, b"\x00" * 16),
        )
        stream = at(payload, "TEST")
        assert resolve_complex_type(stream) == "fffL"
        assert elements_in_struct(stream) == 4

    def test_not_resolved_for_simple_record(self):
        payload = nest(
            "STRM",
            text("TYPE", "f" * 70),
            klv("TMPC", "f", 4, 1, struct.pack(">f", 41.5)),
        )
        assert resolve_annotations(at(payload, "TMPC")).complex_type is None

    def test_too_many_elements(self):
        payload = nest(
            "STRM",
            text("TYPE", "B[65]"),
            klv("TEST", "?", 65, 1, b"\x00" * 65),
        )
        with pytest.raises(AnnotationOverflowError):
            resolve_complex_type(at(payload, "TEST"))


class TestLayout:
    def test_simple_record(self):
        record = at(camera_payload(accl_stream()), "ACCL").record
        assert build_layout(record, None) == (
            ElementSlot("s", 0, 2),
            ElementSlot("s", 2, 2),
            ElementSlot("s", 4, 2),
        )

    def test_simple_record_elements(self):
        stream = at(camera_payload(accl_stream()), "ACCL")
        assert elements_in_struct(stream) == 3
        assert elements_in_struct(at(camera_payload(accl_stream()), "STRM")) == 0

    def test_repeated_descriptor(self):
        record = at(nest("STRM", klv("TEST", "?", 6, 1, b"\x00" * 6)), "TEST").record
        layout = build_layout(record, "sB")
        assert [slot.offset for slot in layout] == [0, 2, 3, 5]

    def test_descriptor_size_mismatch(self):
        record = at(nest("STRM", klv("TEST", "?", 5, 1, b"\x00" * 5)), "TEST").record
        with pytest.raises(CorruptError):
            build_layout(record, "ss")

    def test_complex_without_type(self):
        record = at(nest("STRM", klv("TEST", "?", 4, 1, b"\x00" * 4)), "TEST").record
        with pytest.raises(CorruptError):
            build_layout(record, None)

    def test_single_unknown_tag_takes_remaining_width(self):
        record = at(nest("STRM", klv("TEST", "?", 8, 1, b"\x00" * 8)), "TEST").record
        layout = build_layout(record, "sZs")
        assert layout == (
            ElementSlot("s", 0, 2),
            ElementSlot("Z", 2, 4),
            ElementSlot("s", 6, 2),
        )
        assert [slot.resolved for slot in layout] == [True, False, True]

    def test_elements_after_two_unknown_tags_unlocated(self):
        record = at(nest("STRM", klv("TEST", "?", 8, 1, b"\x00" * 8)), "TEST").record
        layout = build_layout(record, "sZYs")
        assert layout[0] == ElementSlot("s", 0, 2)
        assert layout[1].offset == 2
        assert layout[1].size is None
        assert layout[2].offset is None
        assert layout[3].offset is None
        assert not layout[3].resolved


def test_gps5_annotations_together():
    annotations = resolve_annotations(at(camera_payload(gps5_stream()), "GPS5"))
    assert annotations.complex_type is None
    assert annotations.units[2] == "m"
    assert annotations.scale[0] == 1e7


def test_unrelated_struct_is_not_annotated():
    payload = nest("STRM", klv("TMPC", "f", 4, 1, struct.pack(">f", 1.0)))
    annotations = resolve_annotations(at(payload, "TMPC"))
    assert annotations.units == ()
    assert annotations.scale == (1.0,)
