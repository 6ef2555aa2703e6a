"""Conversion of extracted samples into one timestamped DataFrame per FourCC."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Sequence

import numpy as np
import pandas as pd
import pandera.pandas as pa

from gpmf_extract.processing.extract_payloads import PayloadSamples

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Sample frame schema
# ---------------------------------------------------------------------------

sample_frame_schema = pa.DataFrameSchema(
    columns={
        "timestamp_s": pa.Column(
            float,
            checks=pa.Check(
                lambda s: s.is_monotonic_increasing,
                name="is_monotonic",
                error="timestamp_s must be monotonically increasing across payloads",
            ),
            nullable=False,
        ),
        "payload": pa.Column(int, checks=pa.Check.ge(0), nullable=False),
    },
    # Element columns differ per FourCC
    strict=False,
    coerce=True,
)


def make_timestamps(n: int, start_s: float, end_s: float) -> np.ndarray:
    """Spread *n* samples evenly over a payload's time window."""
    if n == 0:
        return np.empty(0, dtype=np.float64)
    step = (end_s - start_s) / n
    return start_s + np.arange(n) * step


def _element_columns(item: PayloadSamples) -> dict[str, np.ndarray | list[str]]:
    samples = item.samples
    columns: dict[str, np.ndarray | list[str]] = {}
    for j in range(samples.elements):
        name = f"{samples.key}_{j}"
        if samples.is_numeric(j) or j in samples.unknown_elements:
            columns[name] = samples.values[:, j].astype(np.float64)
        else:
            columns[name] = [
                samples.element_bytes(i, j).decode("latin1").rstrip("\x00")
                for i in range(samples.samples)
            ]
    return columns


def samples_to_frames(
    payload_samples: Sequence[PayloadSamples],
) -> dict[str, pd.DataFrame]:
    """Build one DataFrame per FourCC with ``timestamp_s``, ``payload`` and
    one ``<FOURCC>_<n>`` column per element.

    String records are collapsed into a single ``<FOURCC>`` text column.
    Units are kept in ``df.attrs["units"]`` keyed by column name.
    """
    parts: dict[str, list[pd.DataFrame]] = defaultdict(list)
    units: dict[str, dict[str, str]] = defaultdict(dict)

    for item in payload_samples:
        samples = item.samples
        n = samples.samples
        if n == 0:
            continue
        data: dict[str, np.ndarray | list] = {
            "timestamp_s": make_timestamps(n, item.start_s, item.end_s),
            "payload": np.full(n, item.payload_index, dtype=np.int64),
        }
        if samples.type_char in ("c", "u"):
            data[samples.key] = [
                samples.raw[i * samples.struct_size : (i + 1) * samples.struct_size]
                .decode("latin1")
                .rstrip("\x00")
                for i in range(n)
            ]
        else:
            data.update(_element_columns(item))
            for j in range(samples.elements):
                if samples.unit(j):
                    units[samples.key][f"{samples.key}_{j}"] = samples.unit(j)
        parts[samples.key].append(pd.DataFrame(data))

    frames: dict[str, pd.DataFrame] = {}
    for key, dfs in parts.items():
        df = pd.concat(dfs, ignore_index=True)
        df = df.sort_values("timestamp_s", kind="stable", ignore_index=True)
        df = sample_frame_schema.validate(df)
        df.attrs["units"] = units.get(key, {})
        logger.debug("%s: %d rows, %d columns", key, len(df), len(df.columns))
        frames[key] = df
    return frames
