import pathlib

import pydantic_settings


class GpmfExtractDirs(pydantic_settings.BaseSettings):
    PROJECT_ROOT: pathlib.Path = pathlib.Path(__file__).parents[2]
    OUTPUT: pathlib.Path = PROJECT_ROOT / "ExtractedData"


class GpmfExtractConfig(pydantic_settings.BaseSettings):
    DIR: GpmfExtractDirs = GpmfExtractDirs()

    # Stream shown by the CLI when no -f filter is given
    DEFAULT_FOURCC: str = "GPS5"

    # --- Parser limits ---
    # Maximum number of unit strings / TYPE elements per record
    MAX_UNITS: int = 64
    # Maximum container nesting depth (DEVC > STRM > ...)
    MAX_NEST_LEVEL: int = 16

    # Skip malformed records instead of failing the payload
    TOLERANT: bool = True

    # --- External tools used to demux the gpmd track ---
    FFPROBE: str = "ffprobe"
    FFMPEG: str = "ffmpeg"


config = GpmfExtractConfig()
