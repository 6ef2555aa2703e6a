#!/usr/bin/env python3
"""
Extract GPMF Script

Prints the scaled samples of one FourCC (GPS5 by default) or of every stream
found in a GoPro MP4/MOV file, and optionally writes them to CSV files.

Usage:
    gpmf-extract GX010042.MP4             # GPS5 samples
    gpmf-extract GX010042.MP4 -f ACCL     # accelerometer only
    gpmf-extract GX010042.MP4 -f          # first sample record of every stream
    gpmf-extract GX010042.MP4 --csv out/  # also write <name>_<FOURCC>.csv
    gpmf-extract payload.bin --settings   # raw GPMF payload dump
"""

import argparse
import logging
import sys
from pathlib import Path

import rich.console
import rich.logging

from gpmf_extract.config import config
from gpmf_extract.errors import SourceError
from gpmf_extract.extraction_data import ExtractionStatus
from gpmf_extract.processing.camera_settings import extract_camera_settings
from gpmf_extract.processing.extract_payloads import extract_samples
from gpmf_extract.processing.mp4_source import Mp4GpmfSource, read_udta_gpmf
from gpmf_extract.processing.payload_source import MemoryPayloadSource
from gpmf_extract.processing.sample_frames import samples_to_frames
from gpmf_extract.utils import format_sample_line

logger = logging.getLogger(__name__)

# Files read as a single raw GPMF payload rather than demuxed with ffmpeg
RAW_SUFFIXES = {".bin", ".gpmf"}


def setup_logging(verbose: bool = False):
    log_format = "\\[[bold]%(name)s[/bold]] %(message)s"
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=log_format,
        datefmt="[%X]",
        handlers=[
            rich.logging.RichHandler(
                console=rich.console.Console(color_system="auto", stderr=True),
                show_level=True,
                show_path=False,
                enable_link_path=False,
                rich_tracebacks=True,
                tracebacks_show_locals=False,
                markup=True,
            )
        ],
    )


def open_source(path: Path):
    """Payload source for *path*: a raw payload dump or an MP4/MOV file."""
    if path.suffix.lower() in RAW_SUFFIXES:
        try:
            return MemoryPayloadSource([path.read_bytes()])
        except OSError as exc:
            raise SourceError(f"cannot read {path}: {exc}") from exc
    return Mp4GpmfSource.open(path)


def settings_payload(path: Path) -> bytes | None:
    if path.suffix.lower() in RAW_SUFFIXES:
        return path.read_bytes()
    return read_udta_gpmf(path)


def write_csv(frames, out_dir: Path, stem: str) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    for key, df in frames.items():
        csv_path = out_dir / f"{stem}_{key.strip()}.csv"
        df.to_csv(csv_path, index=False)
        logger.info(f"Saved {len(df)} {key} samples to {csv_path}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Extract GPMF telemetry")
    parser.add_argument(
        "file", type=Path, help="GoPro MP4/MOV file or raw GPMF payload (.bin)"
    )
    parser.add_argument(
        "-f",
        "--fourcc",
        nargs="?",
        const="",
        default=config.DEFAULT_FOURCC,
        help=f"Show only this FourCC (default {config.DEFAULT_FOURCC}); "
        "without a value show every stream",
    )
    parser.add_argument(
        "--csv",
        type=Path,
        nargs="?",
        const=config.DIR.OUTPUT,
        metavar="DIR",
        help=f"Write one CSV per FourCC (default directory {config.DIR.OUTPUT})",
    )
    parser.add_argument(
        "--settings", action="store_true", help="Show the camera settings"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    if args.fourcc and len(args.fourcc) != 4:
        parser.error(f"FourCC must be 4 characters, got {args.fourcc!r}")
    fourcc = args.fourcc or None

    setup_logging(args.verbose)
    console = rich.console.Console()

    try:
        source = open_source(args.file)
    except SourceError as e:
        logger.error(f"{args.file} is an invalid MP4/MOV or it has no GPMF data ({e})")
        return 1

    with source:
        payload_samples, report = extract_samples(source, fourcc)

    if args.settings:
        payload = settings_payload(args.file)
        settings = extract_camera_settings(payload) if payload else {}
        if not settings:
            logger.warning(f"No camera settings found in {args.file}")
        for name, value in settings.items():
            console.print(f"  {name}: {value}", markup=False, highlight=False)

    for item in payload_samples:
        for i in range(item.samples.samples):
            console.print(
                format_sample_line(item.samples, i),
                markup=False,
                highlight=False,
                soft_wrap=True,
            )

    match report.status:
        case ExtractionStatus.NO_DATA:
            what = f"{fourcc} data" if fourcc else "GPMF samples"
            logger.error(f"No {what} found in {args.file}")
            return 1
        case ExtractionStatus.CORRUPT:
            if report.has_unknown_types:
                logger.error(f"Unknown GPMF Type within {args.file}")
            else:
                logger.error(f"GPMF data has corruption in {args.file}")
            return 1
        case ExtractionStatus.PARTIAL:
            logger.warning(
                f"{report.payloads_failed} of {report.payloads_attempted} "
                "payloads had data that could not be decoded"
            )

    if args.csv is not None:
        write_csv(samples_to_frames(payload_samples), args.csv, args.file.stem)

    return 0


if __name__ == "__main__":
    sys.exit(main())
