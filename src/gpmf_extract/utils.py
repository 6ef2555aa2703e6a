"""Utility helpers for the gpmf_extract package."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gpmf_extract.scaled import ScaledSamples

# ---------------------------------------------------------------------------
# GPSU / UTC date parsing
# ---------------------------------------------------------------------------

_GPSU_RE = re.compile(r"^(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})\.(\d+)$")


def parse_gpsu(gpsu: str) -> datetime | None:
    """Parse a GPMF ``U`` date (e.g. ``GPSU``) into a UTC :class:`datetime`.

    Format: ``YYMMDDHHMMSS.sss``  e.g. ``"250508104822.180"``
    """
    m = _GPSU_RE.match(gpsu.strip("\x00 "))
    if m is None:
        return None
    yy, mo, dd, hh, mi, ss, frac = m.groups()
    year = 2000 + int(yy)
    microsecond = int(frac.ljust(6, "0")[:6])
    try:
        return datetime(
            year,
            int(mo),
            int(dd),
            int(hh),
            int(mi),
            int(ss),
            microsecond,
            tzinfo=timezone.utc,
        )
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Console formatting of scaled samples
# ---------------------------------------------------------------------------


def _printable(raw: bytes) -> str:
    return raw.decode("latin1").rstrip("\x00")


def format_sample_line(samples: ScaledSamples, sample: int) -> str:
    """One line per sample: ``  GPS5 52.279deg, 20.908deg, 120.000m, ...``.

    Strings are printed as text, FourCC elements verbatim and numbers with
    three decimals followed by their unit.
    """
    parts: list[str] = []
    if samples.type_char in ("c", "u"):
        text = b"".join(
            samples.element_bytes(sample, j) for j in range(samples.elements)
        )
        parts.append(_printable(text))
    else:
        for j in range(samples.elements):
            if j in samples.unknown_elements:
                parts.append("?, ")
            elif samples.is_numeric(j):
                parts.append(f"{samples.values[sample, j]:.3f}{samples.unit(j)}, ")
            else:
                parts.append(f"{_printable(samples.element_bytes(sample, j))}, ")
    return f"  {samples.key} " + "".join(parts)
