"""
GoPro MP4 payload source.

The GoPro MP4 holds a ``meta`` track (sample description type ``gpmd``) with
one GPMF payload per MP4 sample, each covering roughly one second of
recording.  Locating and splitting the track is left to ``ffprobe`` and
``ffmpeg``:

1. ``ffprobe -show_streams`` finds the stream whose ``codec_tag_string`` is
   ``gpmd``.
2. ``ffprobe -show_packets`` reports the size, ``pts_time`` and
   ``duration_time`` of every packet of that stream.
3. ``ffmpeg -map 0:<idx> -f rawvideo -`` dumps the concatenated payloads,
   which are split back into packets by the sizes from step 2.

The camera's "global settings" payload is not part of the track; it lives in
the ``moov > udta > GPMF`` atom and is read directly by :func:`read_udta_gpmf`.
"""

from __future__ import annotations

import json
import logging
import struct
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from gpmf_extract.config import config
from gpmf_extract.errors import SourceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PacketInfo:
    offset: int  # offset into the raw dump
    size: int
    pts_time: float
    duration: float


def _run_json(args: list[str]) -> dict:
    try:
        result = subprocess.run(args, capture_output=True, text=True, check=True)
    except FileNotFoundError as exc:
        raise SourceError(f"{args[0]} is not installed") from exc
    except subprocess.CalledProcessError as exc:
        raise SourceError(f"{args[0]} failed with exit status {exc.returncode}") from exc
    return json.loads(result.stdout or "{}")


def find_gpmf_stream_index(mp4_path: Path) -> int:
    """Return the stream index of the ``gpmd`` track (GoPro Metadata)."""
    info = _run_json(
        [
            config.FFPROBE,
            "-v",
            "quiet",
            "-print_format",
            "json",
            "-show_streams",
            str(mp4_path),
        ]
    )
    for s in info.get("streams", []):
        if s.get("codec_tag_string") == "gpmd":
            return int(s["index"])
    raise SourceError(f"No gpmd stream found in {mp4_path}")


class Mp4GpmfSource:
    """Payload source over the GPMF track of a GoPro MP4/MOV file."""

    def __init__(self, mp4_path: Path, raw: bytes, packets: list[PacketInfo]):
        self.mp4_path = mp4_path
        self._raw = memoryview(raw)
        self._packets = packets

    @classmethod
    def open(cls, mp4_path: Path | str) -> Mp4GpmfSource:
        """Locate the GPMF track of *mp4_path* and load all its payloads."""
        mp4_path = Path(mp4_path)
        if not mp4_path.is_file():
            raise SourceError(f"{mp4_path} does not exist")

        stream_idx = find_gpmf_stream_index(mp4_path)
        logger.debug("Found gpmd metadata on stream index %d", stream_idx)

        logger.debug("Running ffprobe for packet timing …")
        t0 = time.monotonic()
        packets_meta = _run_json(
            [
                config.FFPROBE,
                "-v",
                "quiet",
                "-print_format",
                "json",
                "-show_packets",
                "-select_streams",
                str(stream_idx),
                str(mp4_path),
            ]
        ).get("packets", [])
        logger.debug(
            "ffprobe returned %d packet descriptors (%.2f s)",
            len(packets_meta),
            time.monotonic() - t0,
        )

        logger.debug("Running ffmpeg to extract raw GPMF binary …")
        t0 = time.monotonic()
        try:
            result = subprocess.run(
                [
                    config.FFMPEG,
                    "-v",
                    "quiet",
                    "-i",
                    str(mp4_path),
                    "-map",
                    f"0:{stream_idx}",
                    "-f",
                    "rawvideo",
                    "-",
                ],
                capture_output=True,
                check=True,
            )
        except FileNotFoundError as exc:
            raise SourceError(f"{config.FFMPEG} is not installed") from exc
        except subprocess.CalledProcessError as exc:
            raise SourceError(
                f"{config.FFMPEG} failed with exit status {exc.returncode}"
            ) from exc
        raw = result.stdout
        logger.debug(
            "ffmpeg extracted %.1f KiB of GPMF data (%.2f s)",
            len(raw) / 1024,
            time.monotonic() - t0,
        )

        packets: list[PacketInfo] = []
        offset = 0
        for pmeta in packets_meta:
            psize = int(pmeta["size"])
            pts_time = float(pmeta.get("pts_time", 0.0))
            duration = float(pmeta.get("duration_time", 0.0))
            packets.append(PacketInfo(offset, psize, pts_time, duration))
            offset += psize

        if offset != len(raw):
            logger.warning(
                "Raw GPMF size mismatch: expected %d, got %d bytes",
                offset,
                len(raw),
            )
            # Drop packets that ffmpeg did not deliver in full
            packets = [p for p in packets if p.offset + p.size <= len(raw)]

        logger.info(
            "Found %d GPMF payloads in %s", len(packets), mp4_path.name
        )
        return cls(mp4_path, raw, packets)

    @property
    def duration(self) -> float:
        if not self._packets:
            return 0.0
        last = self._packets[-1]
        return last.pts_time + last.duration

    def payload_count(self) -> int:
        return len(self._packets)

    def payload_size(self, index: int) -> int:
        return self._packets[index].size

    def payload_bytes(self, index: int) -> memoryview:
        p = self._packets[index]
        return self._raw[p.offset : p.offset + p.size]

    def payload_time_range(self, index: int) -> tuple[float, float]:
        p = self._packets[index]
        return p.pts_time, p.pts_time + p.duration

    def close(self) -> None:
        self._packets = []
        self._raw.release()

    def __enter__(self) -> Mp4GpmfSource:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Global settings payload from moov > udta > GPMF
# ---------------------------------------------------------------------------


def _find_mp4_atom(f, parent_end: int, target: bytes) -> tuple[int, int] | None:
    """Scan sibling atoms within *parent_end* for *target* FourCC.

    Returns ``(data_offset, data_size)`` or ``None`` if not found.
    """
    while f.tell() + 8 <= parent_end:
        pos = f.tell()
        header = f.read(8)
        if len(header) < 8:
            break
        size = struct.unpack(">I", header[:4])[0]
        fourcc = header[4:8]
        if size == 0:
            break
        if size == 1:  # 64-bit extended size
            ext = f.read(8)
            if len(ext) < 8:
                break
            size = struct.unpack(">Q", ext)[0]
            data_start = pos + 16
        else:
            data_start = pos + 8
        atom_end = pos + size
        if atom_end <= pos:
            break
        if fourcc == target:
            return data_start, atom_end - data_start
        f.seek(atom_end)
    return None


def read_udta_gpmf(mp4_path: Path | str) -> bytes | None:
    """Return the GPMF payload of the ``moov > udta > GPMF`` atom, if any."""
    mp4_path = Path(mp4_path)
    try:
        with open(mp4_path, "rb") as f:
            f.seek(0, 2)
            file_size = f.tell()
            f.seek(0)

            span = (0, file_size)
            for target in (b"moov", b"udta", b"GPMF"):
                f.seek(span[0])
                found = _find_mp4_atom(f, span[0] + span[1], target)
                if found is None:
                    logger.debug(
                        "No %s atom found in %s", target.decode("ascii"), mp4_path
                    )
                    return None
                span = found

            f.seek(span[0])
            return f.read(span[1])
    except OSError as exc:
        logger.warning("Failed to read GPMF udta atom from %s: %s", mp4_path, exc)
        return None
