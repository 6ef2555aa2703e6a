"""
GPMF Extract Scripts Package

Command-line entry points built on the gpmf_extract parser.

Available scripts:
- extract_gpmf: Print or export the samples of a GoPro MP4/MOV file
"""

__all__ = ["extract_gpmf"]
