"""Lookup of the records that annotate a data record.

GPMF streams describe their samples with sibling records stored *before* the
data: ``SIUN``/``UNIT`` (units), ``TYPE`` (layout of complex structures) and
``SCAL`` (divisors).  They are found with a backward search at the data
record's own level, on a copy of the caller's cursor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from gpmf_extract.config import config
from gpmf_extract.errors import AnnotationOverflowError, CorruptError, GpmfError
from gpmf_extract.record import KEY_SCALE, KEY_SI_UNITS, KEY_TYPE, KEY_UNITS, Record
from gpmf_extract.sample_types import (
    decode_column,
    expand_complex_type,
    is_known,
    is_numeric,
    size_of,
)
from gpmf_extract.stream import GpmfStream, Levels

logger = logging.getLogger(__name__)

_LOOKUP_SCOPE = Levels.CURRENT_LEVEL | Levels.TOLERANT


@dataclass(frozen=True)
class Annotations:
    units: tuple[str, ...] = ()
    complex_type: str | None = None
    scale: tuple[float, ...] = (1.0,)


@dataclass(frozen=True)
class ElementSlot:
    """Position of one element inside a sample structure.

    ``offset`` and ``size`` are ``None`` when the element follows an unknown
    type whose width cannot be inferred.
    """

    type_char: str
    offset: int | None
    size: int | None

    @property
    def resolved(self) -> bool:
        return self.offset is not None and is_known(self.type_char)


def _text(record: Record) -> str:
    return bytes(record.raw_data).decode("latin1").rstrip("\x00")


def _current(stream: GpmfStream) -> Record:
    record = stream.record
    if record is None:
        raise GpmfError("stream is not positioned on a record")
    return record


def resolve_units(stream: GpmfStream) -> tuple[str, ...]:
    """Unit labels for the current record, one per element or one shared."""
    unit_record = stream.copy().find_prev(KEY_SI_UNITS, _LOOKUP_SCOPE)
    if unit_record is None or unit_record.data_size == 0:
        unit_record = stream.copy().find_prev(KEY_UNITS, _LOOKUP_SCOPE)
    if unit_record is None or unit_record.data_size == 0:
        return ()
    if unit_record.repeat > config.MAX_UNITS:
        raise AnnotationOverflowError(
            unit_record.key, unit_record.repeat, config.MAX_UNITS
        )
    raw = bytes(unit_record.raw_data)
    size = unit_record.struct_size
    return tuple(
        raw[i * size : (i + 1) * size].decode("latin1").rstrip("\x00")
        for i in range(unit_record.repeat)
    )


def resolve_complex_type(stream: GpmfStream) -> str | None:
    """Expanded TYPE descriptor preceding the current record, if any."""
    type_record = stream.copy().find_prev(KEY_TYPE, _LOOKUP_SCOPE)
    if type_record is None:
        return None
    complex_type = expand_complex_type(_text(type_record))
    if len(complex_type) > config.MAX_UNITS:
        raise AnnotationOverflowError(
            type_record.key, len(complex_type), config.MAX_UNITS
        )
    return complex_type


def resolve_scale(stream: GpmfStream) -> tuple[float, ...]:
    scale_record = stream.copy().find_prev(KEY_SCALE, _LOOKUP_SCOPE)
    if scale_record is None or scale_record.data_size == 0:
        return (1.0,)
    if (
        not is_numeric(scale_record.type_char)
        or scale_record.data_size % size_of(scale_record.type_char)
    ):
        raise CorruptError(
            scale_record.offset,
            f"SCAL of type {scale_record.type_char!r} cannot hold numeric divisors",
        )
    values = decode_column(scale_record.raw_data, scale_record.type_char)
    if values.size == 0:
        return (1.0,)
    if (values == 0).any():
        logger.debug("SCAL at offset %d has zero divisors", scale_record.offset)
    return tuple(float(v) if v != 0 else 1.0 for v in values)


def resolve_annotations(stream: GpmfStream) -> Annotations:
    """Units, scale and, for complex records only, the TYPE descriptor."""
    record = _current(stream)
    return Annotations(
        units=resolve_units(stream),
        complex_type=resolve_complex_type(stream) if record.is_complex else None,
        scale=resolve_scale(stream),
    )


def build_layout(record: Record, complex_type: str | None) -> tuple[ElementSlot, ...]:
    """Per-element slots of one structure of *record*.

    Simple records are split into ``struct_size / size_of(type)`` slots of
    their own type.  Complex (``?``) records follow *complex_type*; the
    descriptor may repeat an integral number of times within a structure.
    """
    if not record.is_complex:
        width = size_of(record.type_char)
        if width == 0:
            raise GpmfError(f"{record.key} is a nested record and has no samples")
        count = record.elements
        return tuple(
            ElementSlot(record.type_char, i * width, width) for i in range(count)
        )

    if not complex_type:
        raise CorruptError(record.offset, f"complex record {record.key} without TYPE")

    sizes = [size_of(t) if is_known(t) else None for t in complex_type]
    if None not in sizes:
        unit_size = sum(sizes)
        if unit_size == 0 or record.struct_size % unit_size:
            raise CorruptError(
                record.offset,
                f"{record.key} structure size {record.struct_size} does not match "
                f"TYPE {complex_type!r} ({unit_size} bytes)",
            )
        slots = []
        offset = 0
        for _ in range(record.struct_size // unit_size):
            for type_char, size in zip(complex_type, sizes):
                slots.append(ElementSlot(type_char, offset, size))
                offset += size
        return tuple(slots)

    # Unknown tags: a single one takes whatever width the structure has left,
    # anything after a second one cannot be located.
    known_total = sum(s for s in sizes if s is not None)
    inferred = record.struct_size - known_total if sizes.count(None) == 1 else None
    if inferred is not None and inferred <= 0:
        inferred = None
    located = []
    position: int | None = 0
    for type_char, size in zip(complex_type, sizes):
        if size is None:
            size = inferred
        if (
            position is not None
            and size is not None
            and position + size > record.struct_size
        ):
            position = None
        located.append(ElementSlot(type_char, position, size))
        if position is not None and size is not None:
            position += size
        else:
            position = None
    return tuple(located)


def elements_in_struct(stream: GpmfStream) -> int:
    """Number of elements in one structure of the current record."""
    record = _current(stream)
    if record.is_nested:
        return 0
    complex_type = resolve_complex_type(stream) if record.is_complex else None
    return len(build_layout(record, complex_type))
