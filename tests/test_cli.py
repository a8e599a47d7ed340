from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from pitch_trace import cli
from pitch_trace.audio import DemoSource
from pitch_trace.config import ConfigurationError
from pitch_trace.notes import map_to_note
from pitch_trace.stabilizer import LostLock
from pitch_trace.tracker import PitchTracker


def test_parse_args_defaults():
    args = cli.parse_args([])
    assert args.buffer_size == 2048
    assert args.yin_threshold == 0.1
    assert args.probability_threshold == 0.15
    assert args.rms_threshold == 0.01
    assert args.interval_ms == 20.0
    assert not args.demo
    assert not args.console


def test_build_config_maps_arguments():
    args = cli.parse_args(
        [
            "--buffer-size",
            "4096",
            "--probability-threshold",
            "0.3",
            "--max-gain",
            "40",
            "--gain-slew",
            "0.2",
            "--interval-ms",
            "25",
        ]
    )
    cfg = cli.build_config(args)
    assert cfg.buffer_size == 4096
    assert cfg.probability_threshold == 0.3
    assert cfg.autogain.max_gain == 40.0
    assert cfg.autogain.gain_slew == 0.2
    assert cfg.stabilizer.update_interval_ms == 25.0


def test_build_config_rejects_bad_buffer_size():
    with pytest.raises(ConfigurationError):
        cli.build_config(cli.parse_args(["--buffer-size", "3000"]))


def test_create_source_demo():
    args = cli.parse_args(["--demo", "--samplerate", "44100", "--demo-frequency", "220"])
    source = cli.create_source(args)
    assert isinstance(source, DemoSource)
    assert source.frequency == 220.0
    assert source.hop == 882
    assert source.buffer_size == 2048


def test_describe_outputs():
    tracker = PitchTracker(DemoSource(44100, 2048, seed=0))
    assert cli.describe(None, tracker) is None
    assert "clear tone" in cli.describe(LostLock(missed_polls=4), tracker)

    line = cli.describe(map_to_note(440.0), tracker)
    assert line.startswith("A4")
    assert "440.0 Hz" in line


def test_describe_includes_normalized_peak_of_last_reading():
    tracker = PitchTracker(DemoSource(44100, 2048, seed=0))
    tracker.start()
    try:
        reading = tracker.poll()
        line = cli.describe(map_to_note(440.0), tracker)
    finally:
        tracker.stop()
    assert line.endswith(f"peak {reading.normalized_peak:4.2f}")
    assert reading.normalized_peak > 0.0


def test_run_console_stops_on_interrupt(capsys):
    source = DemoSource(44100, 2048, frequency=440.0, seed=0)
    tracker = PitchTracker(source)
    calls = []

    def fake_sleep(seconds):
        calls.append(seconds)
        if len(calls) >= 10:
            raise KeyboardInterrupt

    assert cli.run_console(tracker, sleep=fake_sleep) == 0
    assert not tracker.running
    assert not source.is_active()
    assert len(calls) == 10
    assert all(0.0 <= s <= 0.02 for s in calls)

    out = capsys.readouterr().out
    assert "A4" in out
