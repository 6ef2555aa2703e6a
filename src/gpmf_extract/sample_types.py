"""GPMF sample types.

Every KLV record carries a single-character type tag.  The tag decides the
byte width of one element and how the big-endian bytes are turned into a
value.  Integer and fixed-point types are promoted to float64; text-like
types (strings, FourCC, GUID, dates) are only ever exposed as raw bytes.

https://github.com/gopro/gpmf-parser/blob/main/docs/README.md
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

import numpy as np

from gpmf_extract.errors import UnknownTypeError


class SampleType(StrEnum):
    INT8 = "b"
    UINT8 = "B"
    STRING_ASCII = "c"
    DOUBLE = "d"
    FLOAT = "f"
    FOURCC = "F"
    GUID = "G"
    INT64 = "j"
    UINT64 = "J"
    INT32 = "l"
    UINT32 = "L"
    Q15_16_FIXED_POINT = "q"
    Q31_32_FIXED_POINT = "Q"
    INT16 = "s"
    UINT16 = "S"
    UTC_DATE_TIME = "U"
    STRING_UTF8 = "u"
    COMPLEX = "?"
    NEST = "\x00"

    @classmethod
    def from_char(cls, type_char: str) -> SampleType:
        try:
            return cls(type_char)
        except ValueError:
            raise UnknownTypeError(type_char) from None


@dataclass(frozen=True)
class TypeInfo:
    size: int
    dtype: np.dtype | None  # None for types never decoded as numbers
    fraction_bits: int = 0


# ---------------------------------------------------------------------------
# Type tag → width / numpy decode rule
# ---------------------------------------------------------------------------
_TYPE_INFO: dict[SampleType, TypeInfo] = {
    SampleType.INT8: TypeInfo(1, np.dtype("i1")),
    SampleType.UINT8: TypeInfo(1, np.dtype("u1")),
    SampleType.INT16: TypeInfo(2, np.dtype(">i2")),
    SampleType.UINT16: TypeInfo(2, np.dtype(">u2")),
    SampleType.INT32: TypeInfo(4, np.dtype(">i4")),
    SampleType.UINT32: TypeInfo(4, np.dtype(">u4")),
    SampleType.INT64: TypeInfo(8, np.dtype(">i8")),
    SampleType.UINT64: TypeInfo(8, np.dtype(">u8")),
    SampleType.FLOAT: TypeInfo(4, np.dtype(">f4")),
    SampleType.DOUBLE: TypeInfo(8, np.dtype(">f8")),
    SampleType.Q15_16_FIXED_POINT: TypeInfo(4, np.dtype(">i4"), fraction_bits=16),
    SampleType.Q31_32_FIXED_POINT: TypeInfo(8, np.dtype(">i8"), fraction_bits=32),
    SampleType.STRING_ASCII: TypeInfo(1, None),
    SampleType.STRING_UTF8: TypeInfo(1, None),
    SampleType.FOURCC: TypeInfo(4, None),
    SampleType.GUID: TypeInfo(16, None),
    SampleType.UTC_DATE_TIME: TypeInfo(16, None),
    SampleType.COMPLEX: TypeInfo(0, None),
    SampleType.NEST: TypeInfo(0, None),
}

TEXT_TYPES = frozenset(
    {
        SampleType.STRING_ASCII,
        SampleType.STRING_UTF8,
        SampleType.FOURCC,
        SampleType.GUID,
        SampleType.UTC_DATE_TIME,
    }
)


def type_info(type_char: str) -> TypeInfo:
    return _TYPE_INFO[SampleType.from_char(type_char)]


def size_of(type_char: str) -> int:
    """Byte width of one element of *type_char*.

    Raises :class:`UnknownTypeError` for unrecognised tags.  Composite and
    nested types have no fixed width and report 0.
    """
    return type_info(type_char).size


def is_known(type_char: str) -> bool:
    return type_char in SampleType._value2member_map_


def is_numeric(type_char: str) -> bool:
    return is_known(type_char) and _TYPE_INFO[SampleType(type_char)].dtype is not None


def decode_column(raw: bytes | memoryview, type_char: str) -> np.ndarray:
    """Decode packed big-endian elements of one numeric type into float64."""
    info = type_info(type_char)
    if info.dtype is None:
        raise UnknownTypeError(type_char)
    values = np.frombuffer(raw, dtype=info.dtype).astype(np.float64)
    if info.fraction_bits:
        values /= float(1 << info.fraction_bits)
    return values


_REPEAT_RE = re.compile(r"(.)\[(\d+)\]", re.DOTALL)


def expand_complex_type(type_text: str) -> str:
    """Expand the ``f[3]`` repetition shorthand of a TYPE descriptor.

    >>> expand_complex_type("f[3]L")
    'fffL'
    """
    return _REPEAT_RE.sub(lambda m: m.group(1) * int(m.group(2)), type_text)
