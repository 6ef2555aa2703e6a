"""Parser for the GoPro Metadata Format (GPMF)."""

from gpmf_extract.annotations import elements_in_struct
from gpmf_extract.errors import (
    AnnotationOverflowError,
    BufferTooSmallError,
    CorruptError,
    GpmfError,
    InvalidRangeError,
    SourceError,
    UnknownTypeError,
)
from gpmf_extract.formatted import formatted_value, formatted_values
from gpmf_extract.record import Record
from gpmf_extract.sample_types import SampleType, size_of
from gpmf_extract.scaled import ScaledSamples, scaled_data
from gpmf_extract.stream import GpmfStream, Levels

__version__ = "0.1.0"

__all__ = [
    "AnnotationOverflowError",
    "BufferTooSmallError",
    "CorruptError",
    "GpmfError",
    "GpmfStream",
    "InvalidRangeError",
    "Levels",
    "Record",
    "SampleType",
    "ScaledSamples",
    "SourceError",
    "UnknownTypeError",
    "elements_in_struct",
    "formatted_value",
    "formatted_values",
    "scaled_data",
    "size_of",
]
