#!/usr/bin/env python3
"""
PPG Vitals – headless replay entry point.

Usage
-----
    python main.py --input recording.csv [OPTIONS]

The input is a CSV file with a header row and the columns
``timestamp,value`` (milliseconds, brightness) plus optional ``red`` and
``ir`` channel columns.  Every row is fed through the vital-signs processor
as one camera frame.

Options
-------
    --input PATH             Recorded sample stream (required)
    --log-every INT          Print a reading every N frames (default: 30)
    --learning-period INT    Rhythm learning period in ms (default: 5000)
    --verbose                Enable debug logging
"""

from __future__ import annotations

import argparse
import csv
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ppg_vitals import InputFileError, Sample, VitalSignsProcessor
from ppg_vitals.config import LEARNING_PERIOD_MS, ProcessorConfig
from ppg_vitals.risk import (
    assess_blood_pressure,
    assess_heart_rate,
    assess_respiration,
    assess_spo2,
)

logger = logging.getLogger("ppg_vitals")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replay a recorded PPG stream through the vital-signs estimator",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--input", type=Path, required=True,
                        help="CSV file with timestamp,value[,red,ir] columns")
    parser.add_argument("--log-every", type=int, default=30,
                        help="Print a reading every N frames")
    parser.add_argument("--learning-period", type=int, default=LEARNING_PERIOD_MS,
                        help="Rhythm learning period in milliseconds")
    parser.add_argument("--verbose", action="store_true",
                        help="Enable debug logging")
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

def _optional_float(row: dict, key: str) -> Optional[float]:
    raw = row.get(key)
    if raw is None or raw.strip() == "":
        return None
    return float(raw)


def load_samples(path: Path) -> List[Sample]:
    """Read a recorded stream; raises :class:`InputFileError` on bad input."""
    if not path.is_file():
        raise InputFileError(f"input file not found: {path}")

    samples: List[Sample] = []
    with path.open(newline="") as fh:
        reader = csv.DictReader(fh)
        if reader.fieldnames is None or not {"timestamp", "value"} <= set(reader.fieldnames):
            raise InputFileError(f"{path}: header must contain 'timestamp' and 'value'")
        for line_no, row in enumerate(reader, start=2):
            try:
                samples.append(Sample(
                    value=float(row["value"]),
                    timestamp=int(float(row["timestamp"])),
                    red=_optional_float(row, "red"),
                    ir=_optional_float(row, "ir"),
                ))
            except (TypeError, ValueError) as e:
                raise InputFileError(f"{path}:{line_no}: {e}") from e

    if not samples:
        raise InputFileError(f"{path}: no samples")
    return samples


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def run(args: argparse.Namespace) -> int:
    if args.log_every < 1:
        logger.error("--log-every must be at least 1.")
        return 1

    try:
        samples = load_samples(args.input)
    except InputFileError as e:
        logger.error("%s", e)
        return 1

    config = ProcessorConfig().with_learning_period(args.learning_period)
    processor = VitalSignsProcessor(config)
    logger.info("Replaying %d samples from %s", len(samples), args.input)

    result = None
    for frame_idx, sample in enumerate(samples):
        result = processor.process_frame(sample)
        if frame_idx % args.log_every == 0:
            ts = result.timestamp / 1000.0
            if result.bpm > 0:
                print(f"[{ts:8.2f}s] BPM={result.bpm}  SpO2={result.spo2}%  "
                      f"BP={result.pressure}  rhythm={result.arrhythmia_status}  "
                      f"conf={result.bpm_confidence:.2f}")
            else:
                print(f"[{ts:8.2f}s] Waiting for signal…  finger={result.finger_detected}")

    if result is not None:
        _print_summary(processor)
    return 0


def _print_summary(processor: VitalSignsProcessor) -> None:
    result = processor.last_result
    pressure = processor.blood_pressure.last_estimate.value
    breathing = result.respiration

    hr_risk = assess_heart_rate(result.bpm)
    spo2_risk = assess_spo2(result.spo2)
    bp_risk = assess_blood_pressure(pressure)
    resp_risk = assess_respiration(breathing.rate if breathing else 0.0)

    print("-" * 60)
    print(f"Frames processed : {processor.frame_count}")
    print(f"Heart rate       : {result.bpm} BPM  [{hr_risk.level.value}] {hr_risk.message}")
    print(f"SpO2             : {result.spo2} %  [{spo2_risk.level.value}] {spo2_risk.message}")
    print(f"Blood pressure   : {result.pressure}  [{bp_risk.level.value}] {bp_risk.message}")
    if breathing is not None:
        print(f"Respiration      : {breathing.rate:.1f} /min ({breathing.pattern.value})"
              f"  [{resp_risk.level.value}] {resp_risk.message}")
    else:
        print("Respiration      : --")
    print(f"Rhythm           : {result.rhythm_status.value}  "
          f"events={result.arrhythmia_count}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
        datefmt="%H:%M:%S",
    )
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
