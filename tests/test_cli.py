"""Tests for the gpmf-extract command line."""

import logging
import struct

import pandas as pd
import pytest

from gpmf_builder import accl_stream, camera_payload, gps5_stream, klv, nest, text
from gpmf_extract.scripts import extract_gpmf
from gpmf_extract.scripts.extract_gpmf import main


@pytest.fixture
def payload_file(tmp_path):
    path = tmp_path / "payload.bin"
    path.write_bytes(
        camera_payload(
            text("CASN", "C3441325099999"),
            gps5_stream(),
            accl_stream(),
        )
    )
    return path


def test_default_fourcc_is_gps5(payload_file, capsys):
    assert main([str(payload_file)]) == 0
    out = capsys.readouterr().out
    assert "GPS5 52.279deg, 20.908deg, 120.000m, 1.500m/s, 16.000m/s," in out
    assert "ACCL" not in out


def test_selected_fourcc(payload_file, capsys):
    assert main([str(payload_file), "-f", "ACCL"]) == 0
    lines = [line for line in capsys.readouterr().out.splitlines() if "ACCL" in line]
    assert len(lines) == 2
    assert "ACCL 1.000m/s2, 2.000m/s2, 0.500m/s2," in lines[0]
    assert "ACCL 2.560m/s2, 0.100m/s2, 0.200m/s2," in lines[1]


def test_all_streams(payload_file, capsys):
    assert main([str(payload_file), "-f"]) == 0
    out = capsys.readouterr().out
    assert "GPS5 " in out
    assert "ACCL " in out


def test_missing_fourcc(payload_file, caplog):
    with caplog.at_level(logging.INFO):
        assert main([str(payload_file), "-f", "GYRO"]) == 1
    assert "No GYRO data found" in caplog.text


def test_invalid_fourcc(payload_file):
    with pytest.raises(SystemExit):
        main([str(payload_file), "-f", "GPS"])


def test_invalid_source(tmp_path, caplog):
    assert main([str(tmp_path / "missing.MP4")]) == 1
    assert "is an invalid MP4/MOV or it has no GPMF data" in caplog.text


def test_unknown_type(tmp_path, caplog):
    path = tmp_path / "unknown.bin"
    path.write_bytes(camera_payload(nest("STRM", klv("GPS5", "Z", 2, 1, b"\x00\x01"))))
    assert main([str(path)]) == 1
    assert "Unknown GPMF Type within" in caplog.text


def test_corruption(tmp_path, caplog, monkeypatch):
    monkeypatch.setattr(extract_gpmf.config, "TOLERANT", False)
    path = tmp_path / "corrupt.bin"
    path.write_bytes(struct.pack(">4scBH", b"DEVC", b"\x00", 1, 400) + b"\x00" * 16)
    assert main([str(path)]) == 1
    assert "GPMF data has corruption" in caplog.text


def test_csv_export(payload_file, tmp_path):
    out_dir = tmp_path / "csv"
    assert main([str(payload_file), "-f", "ACCL", "--csv", str(out_dir)]) == 0
    df = pd.read_csv(out_dir / "payload_ACCL.csv")
    assert list(df.columns) == ["timestamp_s", "payload", "ACCL_0", "ACCL_1", "ACCL_2"]
    assert df["ACCL_1"].tolist() == pytest.approx([2.0, 0.1])


def test_settings(payload_file, capsys):
    assert main([str(payload_file), "--settings"]) == 0
    assert "camera_serial: C3441325099999" in capsys.readouterr().out
