"""Decoding of GPMF records into plain Python values.

Unlike :func:`gpmf_extract.scaled.scaled_data` no SCAL divisor is applied:
integers stay ``int``, fixed point becomes ``float``, strings and FourCCs
become ``str``, GUIDs ``uuid.UUID`` and ``U`` dates timezone-aware
``datetime`` objects.
"""

from __future__ import annotations

import uuid
from datetime import datetime

import numpy as np

from gpmf_extract.annotations import build_layout, resolve_complex_type
from gpmf_extract.errors import GpmfError, UnknownTypeError
from gpmf_extract.sample_types import SampleType, type_info
from gpmf_extract.stream import GpmfStream
from gpmf_extract.utils import parse_gpsu

Value = int | float | str | uuid.UUID | datetime


def convert_element(type_char: str, raw: bytes) -> Value:
    sample_type = SampleType.from_char(type_char)
    match sample_type:
        case SampleType.STRING_ASCII | SampleType.FOURCC:
            return raw.decode("latin1").rstrip("\x00")
        case SampleType.STRING_UTF8:
            return raw.decode("utf-8", errors="replace").rstrip("\x00")
        case SampleType.GUID:
            return uuid.UUID(bytes=raw)
        case SampleType.UTC_DATE_TIME:
            text = raw.decode("latin1").rstrip("\x00")
            return parse_gpsu(text) or text
        case SampleType.FLOAT | SampleType.DOUBLE:
            return float(np.frombuffer(raw, dtype=type_info(type_char).dtype)[0])
        case SampleType.Q15_16_FIXED_POINT | SampleType.Q31_32_FIXED_POINT:
            info = type_info(type_char)
            return int(np.frombuffer(raw, dtype=info.dtype)[0]) / float(
                1 << info.fraction_bits
            )
        case SampleType.COMPLEX | SampleType.NEST:
            raise UnknownTypeError(type_char)
        case _:
            return int(np.frombuffer(raw, dtype=type_info(type_char).dtype)[0])


def formatted_values(stream: GpmfStream) -> list[tuple[Value, ...]]:
    """Decode every sample of the current record, one tuple per sample."""
    record = stream.record
    if record is None:
        raise GpmfError("stream is not positioned on a record")
    if record.is_nested:
        raise GpmfError(f"{record.key} is a nested record")

    raw = bytes(record.raw_data)
    size = record.struct_size
    rows = [raw[i * size : (i + 1) * size] for i in range(record.repeat)]

    # A plain string record holds one string per structure, or a single
    # string when it is written one character per structure
    if record.type_char in (SampleType.STRING_ASCII, SampleType.STRING_UTF8):
        if size == 1 and record.repeat > 1:
            return [(convert_element(record.type_char, raw),)]
        return [(convert_element(record.type_char, row),) for row in rows]

    complex_type = resolve_complex_type(stream) if record.is_complex else None
    layout = build_layout(record, complex_type)
    for element, slot in enumerate(layout):
        if not slot.resolved:
            raise UnknownTypeError(slot.type_char, element=element)

    return [
        tuple(
            convert_element(slot.type_char, row[slot.offset : slot.offset + slot.size])
            for slot in layout
        )
        for row in rows
    ]


def formatted_value(stream: GpmfStream) -> Value | tuple[Value, ...]:
    """The value of a single-sample record; a tuple if it has several elements."""
    values = formatted_values(stream)
    if len(values) != 1:
        key = stream.record.key if stream.record else "?"
        raise GpmfError(f"expected 1 {key} value, found {len(values)}")
    (sample,) = values
    return sample[0] if len(sample) == 1 else sample
