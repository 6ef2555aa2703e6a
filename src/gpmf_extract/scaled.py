"""Conversion of raw GPMF samples into scaled floating-point values."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from gpmf_extract.annotations import (
    ElementSlot,
    build_layout,
    resolve_annotations,
)
from gpmf_extract.errors import (
    BufferTooSmallError,
    GpmfError,
    InvalidRangeError,
    UnknownTypeError,
)
from gpmf_extract.sample_types import SampleType, decode_column, is_numeric
from gpmf_extract.stream import GpmfStream

logger = logging.getLogger(__name__)

_TARGET_DTYPES: dict[SampleType, np.dtype] = {
    SampleType.DOUBLE: np.dtype(np.float64),
    SampleType.FLOAT: np.dtype(np.float32),
}


@dataclass
class ScaledSamples:
    """Scaled samples of one record, detached from the payload buffer.

    ``values`` has shape ``(samples, elements)``.  Text-like elements
    (strings, FourCC, GUID, dates) hold NaN there; their bytes are available
    through :meth:`element_bytes`.  Columns listed in ``unknown_elements``
    could not be decoded and hold zeros.
    """

    key: str
    type_char: str
    values: np.ndarray
    layout: tuple[ElementSlot, ...]
    units: tuple[str, ...]
    raw: bytes
    struct_size: int
    unknown_elements: tuple[int, ...] = ()

    @property
    def samples(self) -> int:
        return self.values.shape[0]

    @property
    def elements(self) -> int:
        return len(self.layout)

    def unit(self, element: int) -> str:
        if not self.units:
            return ""
        return self.units[element % len(self.units)]

    def is_numeric(self, element: int) -> bool:
        slot = self.layout[element]
        return slot.resolved and is_numeric(slot.type_char)

    def element_bytes(self, sample: int, element: int) -> bytes:
        slot = self.layout[element]
        if not slot.resolved:
            raise UnknownTypeError(slot.type_char, element=element)
        base = sample * self.struct_size + slot.offset
        return self.raw[base : base + slot.size]


def _output_array(
    out: np.ndarray | None, dtype: np.dtype, count: int, elements: int
) -> np.ndarray:
    needed = count * elements
    if out is None:
        return np.zeros((count, elements), dtype=dtype)
    if out.dtype != dtype:
        raise GpmfError(f"output buffer has dtype {out.dtype}, expected {dtype}")
    if out.size < needed:
        raise BufferTooSmallError(needed, out.size)
    if not out.flags.c_contiguous:
        raise GpmfError("output buffer must be C-contiguous")
    values = out.reshape(-1)[:needed].reshape(count, elements)
    values[...] = 0
    return values


def scaled_data(
    stream: GpmfStream,
    out: np.ndarray | None = None,
    start: int = 0,
    count: int | None = None,
    target_type: SampleType | str = SampleType.DOUBLE,
    tolerant: bool = False,
) -> ScaledSamples:
    """Decode samples ``start .. start+count`` of the current record.

    Every numeric element is divided by the matching SCAL value (indexed by
    element position modulo the number of divisors).  Complex records are
    decoded element by element following their TYPE descriptor.

    Parameters
    ----------
    out:
        Optional caller-owned array receiving the values row-major; it must
        hold at least ``count * elements`` values of the target dtype.
    target_type:
        ``SampleType.DOUBLE`` (default) or ``SampleType.FLOAT``.
    tolerant:
        When True an undecodable element is left at zero and reported in
        ``unknown_elements`` instead of raising :class:`UnknownTypeError`.
    """
    record = stream.record
    if record is None:
        raise GpmfError("stream is not positioned on a record")
    if record.is_nested:
        raise GpmfError(f"{record.key} is a nested record and has no samples")

    dtype = _TARGET_DTYPES.get(SampleType.from_char(str(target_type)))
    if dtype is None:
        raise UnknownTypeError(str(target_type))

    annotations = resolve_annotations(stream)
    layout = build_layout(
        record, annotations.complex_type if record.is_complex else None
    )

    if count is None:
        count = record.repeat - start
    if start < 0 or count < 0 or start + count > record.repeat:
        raise InvalidRangeError(start, count, record.repeat)

    values = _output_array(out, dtype, count, len(layout))

    size = record.struct_size
    raw = bytes(record.raw_data[start * size : (start + count) * size])
    rows = np.frombuffer(raw, dtype=np.uint8).reshape(count, size)

    scale = annotations.scale
    unknown: list[int] = []
    for element, slot in enumerate(layout):
        if not slot.resolved:
            if not tolerant:
                raise UnknownTypeError(slot.type_char, element=element)
            logger.debug(
                "%s element %d has undecodable type %r",
                record.key,
                element,
                slot.type_char,
            )
            unknown.append(element)
            continue
        if not is_numeric(slot.type_char):
            values[:, element] = np.nan
            continue
        column = np.ascontiguousarray(rows[:, slot.offset : slot.offset + slot.size])
        values[:, element] = decode_column(column, slot.type_char) / scale[
            element % len(scale)
        ]

    return ScaledSamples(
        key=record.key,
        type_char=record.type_char,
        values=values,
        layout=layout,
        units=annotations.units,
        raw=raw,
        struct_size=size,
        unknown_elements=tuple(unknown),
    )
