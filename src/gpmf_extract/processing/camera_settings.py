"""
GoPro camera settings from the "Global Settings" GPMF payload.

The GoPro firmware writes a GPMF payload into the MP4 ``moov > udta > GPMF``
atom.  It holds the camera serial, lens info, Protune settings, stabilisation
mode, FOV, digital zoom, lens projection, etc.

| Key | GPMF FourCC | Example |
|-----|-------------|---------|
| `camera_serial` | `CASN` | `"C3441325099999"` |
| `metadata_version` | `VERS` | `"8.1.2"` |
| `protune` | `PRTN` | `true` |
| `electronic_stabilization` | `EISA` | `"HS High"` |
| `lens_projection` | `PRJT` | `"GPRO"` (`"MLNS"` = Max Lens Mod) |
| `diagonal_fov_deg` | `ZFOV` | `64.805` |
"""

from __future__ import annotations

import logging
from typing import Any

from gpmf_extract.errors import GpmfError
from gpmf_extract.formatted import formatted_value
from gpmf_extract.stream import GpmfStream, Levels

logger = logging.getLogger(__name__)

# Map of GPMF FourCC → (output_key, value_type)
# value_type: "str", "bool_yn", "int", "float", "fourcc", "version"
GOPRO_SETTINGS_MAP: dict[str, tuple[str, str]] = {
    "FMWR": ("firmware", "str"),
    "CASN": ("camera_serial", "str"),
    "LINF": ("lens_serial", "str"),
    "VERS": ("metadata_version", "version"),
    "PRTN": ("protune", "bool_yn"),
    "PTWB": ("white_balance", "str"),
    "PTSH": ("sharpness", "str"),
    "PTCL": ("color_mode", "str"),
    "EXPT": ("exposure_type", "str"),
    "PIMX": ("auto_iso_max", "int"),
    "PIMN": ("auto_iso_min", "int"),
    "PTEV": ("ev_compensation", "str"),
    "VFOV": ("field_of_view", "str"),
    "DZOM": ("digital_zoom_on", "bool_yn"),
    "DZST": ("digital_zoom", "int"),
    "SMTR": ("spot_meter", "bool_yn"),
    "EISE": ("electronic_stabilization_on", "bool_yn"),
    "EISA": ("electronic_stabilization", "str"),
    "PRJT": ("lens_projection", "fourcc"),
    "OREN": ("auto_rotation", "str"),
    "AUDO": ("audio_setting", "str"),
    "AUPT": ("auto_protune", "bool_yn"),
    "RATE": ("highlight_tag_rate", "str"),
    "SROT": ("sensor_readout_time_ms", "float"),
    "ZFOV": ("diagonal_fov_deg", "float"),
    "CMOD": ("camera_mode", "int"),
    "MTYP": ("media_type", "int"),
    "VLTE": ("vlte", "bool_yn"),
    "HLVL": ("hilight_level", "bool_yn"),
    "BROD": ("broadcast", "str"),
}


def _first(value: Any) -> Any:
    return value[0] if isinstance(value, tuple) else value


def _convert(value: Any, val_type: str) -> Any:
    if val_type == "str":
        return str(value).strip()
    if val_type == "bool_yn":
        return str(value).strip().upper() == "Y"
    if val_type == "int":
        return int(_first(value))
    if val_type == "float":
        return round(float(_first(value)), 6)
    if val_type == "fourcc":
        return str(value).strip()
    if val_type == "version":
        # VERS is stored as B (unsigned bytes), e.g. [8, 1, 2]
        parts = value if isinstance(value, tuple) else (value,)
        return ".".join(str(int(v)) for v in parts)
    raise ValueError(f"unknown setting value type {val_type!r}")


def extract_camera_settings(buffer: bytes | memoryview) -> dict[str, Any]:
    """Decode the known settings of a global settings payload.

    Returns a flat dict with human-readable keys (see ``GOPRO_SETTINGS_MAP``).
    Settings that cannot be decoded are logged and left out.
    """
    settings: dict[str, Any] = {}
    with GpmfStream(buffer) as stream:
        for record in stream.iter_records(
            None, Levels.RECURSE_LEVELS | Levels.TOLERANT
        ):
            if record.is_nested or record.key not in GOPRO_SETTINGS_MAP:
                continue
            out_key, val_type = GOPRO_SETTINGS_MAP[record.key]
            try:
                settings[out_key] = _convert(formatted_value(stream), val_type)
            except (GpmfError, ValueError, TypeError) as exc:
                logger.debug("Failed to decode GPMF setting %s: %s", record.key, exc)

    if settings:
        logger.debug("Extracted %d GoPro settings", len(settings))
    return settings
