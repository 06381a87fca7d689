"""
Tests for the headless replay entry point.
Run with:  pytest tests/
"""

from __future__ import annotations

import math

import pytest

import main
from ppg_vitals import InputFileError


def write_recording(path, seconds: float = 12.0, fs: float = 30.0, channels: bool = False):
    lines = ["timestamp,value,red,ir" if channels else "timestamp,value"]
    for i in range(int(seconds * fs)):
        ts = int(round(i * 1000 / fs))
        v = 100 + 3 * math.sin(2 * math.pi * 1.2 * i / fs)
        if channels:
            lines.append(f"{ts},{v:.4f},{v * 1.5:.4f},{v:.4f}")
        else:
            lines.append(f"{ts},{v:.4f}")
    path.write_text("\n".join(lines) + "\n")
    return path


# ---------------------------------------------------------------------------
# load_samples() tests
# ---------------------------------------------------------------------------

class TestLoadSamples:

    def test_value_only(self, tmp_path):
        samples = main.load_samples(write_recording(tmp_path / "rec.csv", seconds=1.0))
        assert len(samples) == 30
        assert samples[0].timestamp == 0
        assert samples[0].red is None

    def test_with_channels(self, tmp_path):
        samples = main.load_samples(write_recording(tmp_path / "rec.csv", seconds=1.0,
                                                    channels=True))
        assert samples[5].red == pytest.approx(samples[5].value * 1.5, rel=1e-3)
        assert samples[5].ir is not None

    def test_missing_file(self, tmp_path):
        with pytest.raises(InputFileError):
            main.load_samples(tmp_path / "missing.csv")

    def test_bad_header(self, tmp_path):
        path = tmp_path / "rec.csv"
        path.write_text("time,brightness\n0,100\n")
        with pytest.raises(InputFileError):
            main.load_samples(path)

    def test_bad_row(self, tmp_path):
        path = tmp_path / "rec.csv"
        path.write_text("timestamp,value\n0,100\n33,abc\n")
        with pytest.raises(InputFileError, match=":3:"):
            main.load_samples(path)

    def test_empty(self, tmp_path):
        path = tmp_path / "rec.csv"
        path.write_text("timestamp,value\n")
        with pytest.raises(InputFileError):
            main.load_samples(path)


# ---------------------------------------------------------------------------
# main() tests
# ---------------------------------------------------------------------------

class TestMain:

    def test_replay_prints_summary(self, tmp_path, capsys):
        path = write_recording(tmp_path / "rec.csv")
        assert main.main(["--input", str(path), "--log-every", "90"]) == 0
        out = capsys.readouterr().out
        assert "Heart rate" in out
        assert "BPM=" in out

    def test_learning_period_option(self, tmp_path, capsys):
        path = write_recording(tmp_path / "rec.csv", seconds=6.0)
        assert main.main(["--input", str(path), "--learning-period", "2000"]) == 0
        assert "NORMAL" in capsys.readouterr().out

    def test_missing_input_exit_code(self, tmp_path):
        assert main.main(["--input", str(tmp_path / "nope.csv")]) == 1

    def test_invalid_log_every(self, tmp_path):
        path = write_recording(tmp_path / "rec.csv", seconds=1.0)
        assert main.main(["--input", str(path), "--log-every", "0"]) == 1
