"""In-memory model of a single GPMF KLV record."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from gpmf_extract.errors import CorruptError
from gpmf_extract.sample_types import SampleType, is_known, size_of

HEADER_FMT = ">4scBH"
HEADER_SIZE = struct.calcsize(HEADER_FMT)  # 8

KEY_STREAM = "STRM"
KEY_SCALE = "SCAL"
KEY_SI_UNITS = "SIUN"
KEY_UNITS = "UNIT"
KEY_TYPE = "TYPE"

# Keys that describe a stream rather than carry its samples
RESERVED_KEYS = frozenset(
    {
        "DEVC",
        "DVID",
        "DVNM",
        "STRM",
        "STNM",
        "RMRK",
        "SCAL",
        "SIUN",
        "UNIT",
        "TYPE",
        "TSMP",
        "TIMO",
        "EMPT",
        "TICK",
        "TOCK",
        "STMP",
        "ORIN",
        "ORIO",
        "MTRX",
    }
)


def align4(n: int) -> int:
    return (n + 3) & ~3


def is_valid_fourcc(key: str) -> bool:
    """True when *key* looks like a conventional FourCC (A-Z, a-z, 0-9, space)."""
    return len(key) == 4 and all(c.isascii() and (c.isalnum() or c == " ") for c in key)


@dataclass(frozen=True)
class Record:
    """One KLV node viewed in place inside its payload buffer."""

    key: str  # 4 characters, latin-1 decoded
    type_char: str  # "\x00" for nested containers, "?" for complex
    struct_size: int
    repeat: int
    offset: int  # offset of the 8-byte header in the payload
    level: int  # 0 for top-level records
    raw_data: memoryview

    @property
    def data_size(self) -> int:
        return self.struct_size * self.repeat

    @property
    def padded_size(self) -> int:
        return HEADER_SIZE + align4(self.data_size)

    @property
    def data_offset(self) -> int:
        return self.offset + HEADER_SIZE

    @property
    def is_nested(self) -> bool:
        return self.type_char == SampleType.NEST

    @property
    def is_complex(self) -> bool:
        return self.type_char == SampleType.COMPLEX

    @property
    def has_samples(self) -> bool:
        return (
            not self.is_nested
            and self.struct_size > 0
            and self.repeat > 0
            and self.key not in RESERVED_KEYS
        )

    @property
    def sample_type(self) -> SampleType:
        return SampleType.from_char(self.type_char)

    @property
    def elements(self) -> int:
        """Elements per structure for a simple (non-complex) type.

        Complex records need their TYPE descriptor, see
        :func:`gpmf_extract.annotations.elements_in_struct`.
        """
        width = size_of(self.type_char)
        if width == 0:
            return 0
        if self.struct_size % width:
            raise CorruptError(
                self.offset,
                f"{self.key} structure size {self.struct_size} is not a multiple "
                f"of {width}-byte type {self.type_char!r}",
            )
        return self.struct_size // width

    def __repr__(self) -> str:
        type_label = "NEST" if self.is_nested else self.type_char
        return (
            f"Record({self.key!r} type={type_label} size={self.struct_size} "
            f"repeat={self.repeat} offset={self.offset} level={self.level})"
        )


def read_header(buf: memoryview, offset: int) -> tuple[str, str, int, int]:
    key, type_byte, struct_size, repeat = struct.unpack_from(HEADER_FMT, buf, offset)
    return key.decode("latin1"), type_byte.decode("latin1"), struct_size, repeat


def parse_record(buf: memoryview, offset: int, end: int, level: int) -> Record:
    """Parse the record whose header starts at *offset*, bounded by *end*.

    Raises :class:`CorruptError` when the header or its declared data do not
    fit before *end*.
    """
    if offset + HEADER_SIZE > end:
        raise CorruptError(
            offset, f"truncated header, {end - offset} bytes left in level"
        )
    key, type_char, struct_size, repeat = read_header(buf, offset)
    data_start = offset + HEADER_SIZE
    data_end = data_start + struct_size * repeat
    if data_end > end:
        raise CorruptError(
            offset,
            f"{key!r} declares {struct_size * repeat} bytes, "
            f"only {end - data_start} remain",
        )
    return Record(
        key=key,
        type_char=type_char,
        struct_size=struct_size,
        repeat=repeat,
        offset=offset,
        level=level,
        raw_data=buf[data_start:data_end],
    )


def is_plausible_header(buf: memoryview, offset: int, end: int) -> bool:
    """Heuristic used to resynchronise after a malformed record."""
    if offset + HEADER_SIZE > end:
        return False
    key, type_char, struct_size, repeat = read_header(buf, offset)
    if not is_valid_fourcc(key) or not is_known(type_char):
        return False
    return offset + HEADER_SIZE + struct_size * repeat <= end
