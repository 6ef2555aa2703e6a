"""
Extraction of scaled samples from every payload of a source.

Each payload is parsed on its own: a payload whose GPMF data is corrupt is
logged, recorded in the :class:`ExtractionReport` and skipped, and the run
continues with the next payload.  A stream whose samples cannot be decoded
(unknown type, bad TYPE descriptor) is skipped the same way while the other
streams of its payload are kept.

Within a payload every ``STRM`` container is visited (``DEVC > STRM``).  With
a FourCC filter the matching record is decoded; without one, the first record
carrying samples in each stream is decoded instead.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from gpmf_extract.config import config
from gpmf_extract.errors import CorruptError, GpmfError, UnknownTypeError
from gpmf_extract.extraction_data import (
    ExtractionReport,
    FailureKind,
    PayloadFailure,
)
from gpmf_extract.processing.payload_source import PayloadSource
from gpmf_extract.record import KEY_STREAM
from gpmf_extract.scaled import ScaledSamples, scaled_data
from gpmf_extract.stream import GpmfStream, Levels, as_key

logger = logging.getLogger(__name__)


@dataclass
class PayloadSamples:
    """Scaled samples of one record found in one payload."""

    payload_index: int
    start_s: float  # payload start on the media timeline, seconds
    end_s: float  # payload end, seconds
    samples: ScaledSamples


def extract_payload(
    buffer: bytes | memoryview,
    fourcc: str | bytes | None = None,
    tolerant: bool | None = None,
    stream_errors: list[tuple[str, GpmfError]] | None = None,
) -> list[ScaledSamples]:
    """Decode the selected record of every ``STRM`` in one payload.

    A record whose samples cannot be decoded is logged and skipped; the
    ``(key, error)`` pair is appended to *stream_errors* when given.
    Errors walking the payload itself propagate.
    """
    if tolerant is None:
        tolerant = config.TOLERANT
    key = as_key(fourcc)
    scope = Levels.RECURSE_LEVELS
    if tolerant:
        scope |= Levels.TOLERANT

    results: list[ScaledSamples] = []
    with GpmfStream(buffer) as stream:
        while stream.find_next(KEY_STREAM, scope):
            if key is not None:
                if stream.find_next(key, scope) is None:
                    continue
            elif stream.seek_to_samples(scope) is None:
                continue

            record = stream.record
            if record.repeat == 0:
                continue
            try:
                results.append(scaled_data(stream, tolerant=tolerant))
            except GpmfError as exc:
                logger.warning("Skipping %s stream: %s", record.key, exc)
                if stream_errors is not None:
                    stream_errors.append((record.key, exc))
    return results


def _failure_kind(exc: GpmfError) -> FailureKind:
    if isinstance(exc, CorruptError):
        return FailureKind.CORRUPT
    if isinstance(exc, UnknownTypeError):
        return FailureKind.UNKNOWN_TYPE
    return FailureKind.OTHER


def extract_samples(
    source: PayloadSource,
    fourcc: str | bytes | None = None,
    tolerant: bool | None = None,
) -> tuple[list[PayloadSamples], ExtractionReport]:
    """Run :func:`extract_payload` over every payload of *source*."""
    key = as_key(fourcc)
    report = ExtractionReport(fourcc=key)
    results: list[PayloadSamples] = []

    t0 = time.monotonic()
    for index in range(source.payload_count()):
        report.payloads_attempted += 1
        stream_errors: list[tuple[str, GpmfError]] = []
        try:
            start_s, end_s = source.payload_time_range(index)
            found = extract_payload(
                source.payload_bytes(index), key, tolerant, stream_errors
            )
        except GpmfError as exc:
            logger.warning("Skipping payload %d: %s", index, exc)
            report.failures.append(
                PayloadFailure(index=index, kind=_failure_kind(exc), message=str(exc))
            )
            continue

        for record_key, exc in stream_errors:
            report.failures.append(
                PayloadFailure(
                    index=index,
                    kind=_failure_kind(exc),
                    message=str(exc),
                    key=record_key,
                )
            )
        if found:
            report.payloads_with_data += 1
        for samples in found:
            report.sample_counts[samples.key] = (
                report.sample_counts.get(samples.key, 0) + samples.samples
            )
            results.append(PayloadSamples(index, start_s, end_s, samples))

    logger.info(
        "Parsed %d GPMF payloads (%d with data, %d failed) in %.2f s",
        report.payloads_attempted,
        report.payloads_with_data,
        report.payloads_failed,
        time.monotonic() - t0,
    )
    for k in sorted(report.sample_counts):
        logger.info("  %-5s  %7d samples", k, report.sample_counts[k])
    return results, report
