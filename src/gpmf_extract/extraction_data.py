"""Models describing the outcome of a multi-payload extraction run."""

from __future__ import annotations

from enum import StrEnum

import pydantic


class ExtractionStatus(StrEnum):
    OK = "OK"
    PARTIAL = "PARTIAL"
    NO_DATA = "NO_DATA"
    CORRUPT = "CORRUPT"


class FailureKind(StrEnum):
    CORRUPT = "CORRUPT"
    UNKNOWN_TYPE = "UNKNOWN_TYPE"
    OTHER = "OTHER"


class PayloadFailure(pydantic.BaseModel):
    """A payload, or one stream of it, that could not be decoded and was skipped.

    ``key`` names the failing record of a single stream; it is ``None`` when
    the payload as a whole could not be walked.
    """

    index: int
    kind: FailureKind
    message: str
    key: str | None = None


class ExtractionReport(pydantic.BaseModel):
    """Summary of an extraction run over every payload of a source.

    ``status`` distinguishes a source without any GPMF samples
    (``NO_DATA``) from one whose payloads are present but could not be
    decoded (``CORRUPT``).
    """

    fourcc: str | None = None
    payloads_attempted: int = 0
    payloads_with_data: int = 0
    failures: list[PayloadFailure] = pydantic.Field(default_factory=list)
    sample_counts: dict[str, int] = pydantic.Field(default_factory=dict)

    @property
    def payloads_failed(self) -> int:
        return len({f.index for f in self.failures})

    @property
    def status(self) -> ExtractionStatus:
        if self.failures:
            return (
                ExtractionStatus.PARTIAL
                if self.payloads_with_data
                else ExtractionStatus.CORRUPT
            )
        if self.payloads_with_data:
            return ExtractionStatus.OK
        return ExtractionStatus.NO_DATA

    @property
    def has_unknown_types(self) -> bool:
        return any(f.kind == FailureKind.UNKNOWN_TYPE for f in self.failures)
