from __future__ import annotations

import logging
import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from pitch_trace.amplitude import analyze_amplitude
from pitch_trace.audio import DemoSource
from pitch_trace.config import ConfigurationError, TrackerConfig
from pitch_trace.notes import NoteDatum
from pitch_trace.stabilizer import LostLock
from pitch_trace.tracker import PitchTracker, TrackerReading

SAMPLE_RATE = 44100
BUFFER = 2048


class FakeSource:
    """In-memory source returning whatever frame the test installs."""

    def __init__(self, frame=None, sample_rate=SAMPLE_RATE, buffer_size=BUFFER):
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self.frame = frame
        self.active = False
        self.starts = 0
        self.stops = 0

    def start(self):
        self.active = True
        self.starts += 1

    def stop(self):
        self.active = False
        self.stops += 1

    def is_active(self):
        return self.active

    def latest_frame(self):
        return self.frame


class FakeClock:
    def __init__(self, step=0.02):
        self.now = 0.0
        self.step = step

    def __call__(self):
        value = self.now
        self.now += self.step
        return value


def _sine(frequency, amplitude=0.3):
    t = np.arange(BUFFER) / SAMPLE_RATE
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


def _tracker(frame=None, **config):
    source = FakeSource(frame)
    tracker = PitchTracker(source, TrackerConfig(**config), clock=FakeClock())
    return tracker, source


def test_amplitude_of_silence_and_sine():
    silent = analyze_amplitude(np.zeros(BUFFER, dtype=np.float32))
    assert silent.rms == 0.0
    assert silent.peak == 0.0

    reading = analyze_amplitude(_sine(440.0, amplitude=0.5))
    assert reading.rms == pytest.approx(0.5 / np.sqrt(2), rel=1e-3)
    assert reading.peak == pytest.approx(0.5, rel=1e-3)
    assert analyze_amplitude(np.array([-0.8, 0.2])).peak == pytest.approx(0.8)


def test_poll_before_start_returns_none():
    tracker, _ = _tracker(_sine(440.0))
    assert tracker.poll() is None
    assert tracker.poll_and_stabilize() is None


def test_poll_with_inactive_source_returns_none():
    tracker, source = _tracker(_sine(440.0))
    tracker.start()
    source.active = False
    assert tracker.poll() is None


def test_poll_without_frame_returns_none():
    tracker, source = _tracker(None)
    tracker.start()
    assert tracker.poll() is None
    source.frame = np.zeros(100, dtype=np.float32)
    assert tracker.poll() is None


def test_silence_is_gated_before_the_estimator(monkeypatch):
    tracker, _ = _tracker(np.zeros(BUFFER, dtype=np.float32))
    tracker.start()

    def _fail(frame):
        raise AssertionError("estimator should not run on gated frames")

    monkeypatch.setattr(tracker.session.detector, "estimate", _fail)
    reading = tracker.poll()

    assert isinstance(reading, TrackerReading)
    assert reading.frequency is None
    assert reading.probability == 0.0
    assert reading.rms == 0.0
    assert reading.peak == 0.0
    assert 0.5 <= reading.gain <= 200.0


def test_sine_produces_full_reading():
    frame = _sine(440.0)
    tracker, _ = _tracker(frame)
    tracker.start()
    reading = tracker.poll()

    assert reading.frequency == pytest.approx(440.0, rel=0.01)
    assert reading.probability > 0.15
    assert reading.rms == pytest.approx(analyze_amplitude(frame).rms)
    assert reading.smoothed_rms == pytest.approx(reading.rms)
    assert reading.gain == 1.0


def test_reading_reports_normalized_peak():
    frame = _sine(440.0, amplitude=0.02)
    tracker, _ = _tracker(frame)
    tracker.start()
    readings = [tracker.poll() for _ in range(50)]

    last = readings[-1]
    assert tracker.session.last_reading is last
    assert last.normalized_peak == pytest.approx(min(1.0, last.peak * last.gain), rel=1e-4)
    assert last.normalized_peak > readings[0].normalized_peak


def test_stop_logs_session_duration(caplog):
    tracker, _ = _tracker(_sine(440.0))
    tracker.start()
    tracker.poll()
    with caplog.at_level(logging.DEBUG, logger="pitch_trace.tracker"):
        tracker.stop()
    assert "stopped after 1 polls" in caplog.text
    assert " s)" in caplog.text


def test_noise_above_gate_reports_no_pitch():
    rng = np.random.default_rng(seed=7)
    tracker, _ = _tracker(rng.normal(scale=0.3, size=BUFFER).astype(np.float32))
    tracker.start()
    reading = tracker.poll()
    assert reading.frequency is None
    assert reading.probability == 0.0
    assert reading.rms > 0.01


def test_repeated_frames_are_analysed_identically():
    tracker, _ = _tracker(_sine(587.33))
    tracker.start()
    first = tracker.poll()
    second = tracker.poll()
    assert first.frequency == second.frequency
    assert first.probability == second.probability


def test_gain_tracks_level_over_time():
    tracker, source = _tracker(_sine(440.0, amplitude=0.02))
    tracker.start()
    gains = [tracker.poll().gain for _ in range(100)]
    assert gains[0] == 1.0
    assert gains[-1] > gains[1] > gains[0]
    assert gains[-1] == pytest.approx(0.2 / (0.02 / np.sqrt(2)), rel=0.02)


def test_poll_and_stabilize_reports_notes_and_lost_lock():
    tracker, source = _tracker(_sine(440.0))
    tracker.start()

    note = tracker.poll_and_stabilize()
    assert isinstance(note, NoteDatum)
    assert note.note_name == "A4"

    source.frame = np.zeros(BUFFER, dtype=np.float32)
    outputs = [tracker.poll_and_stabilize() for _ in range(5)]
    assert outputs[:3] == [None, None, None]
    assert isinstance(outputs[3], LostLock)
    assert outputs[4] is None


def test_inactive_source_counts_as_miss():
    tracker, source = _tracker(_sine(440.0))
    tracker.start()
    source.active = False
    for _ in range(3):
        assert tracker.poll_and_stabilize() is None
    assert isinstance(tracker.poll_and_stabilize(), LostLock)


def test_stop_discards_session_state():
    tracker, source = _tracker(_sine(440.0))
    tracker.start()
    tracker.start()
    assert source.starts == 1

    tracker.poll_and_stabilize()
    old_session = tracker.session
    assert old_session.stabilizer.state.last_accepted_frequency is not None

    tracker.stop()
    assert tracker.session is None
    assert not tracker.running
    assert source.stops == 1

    tracker.start()
    assert tracker.session is not old_session
    assert tracker.session.autogain.state.smoothed_rms is None
    assert tracker.session.stabilizer.state.last_accepted_frequency is None


def test_sessions_do_not_share_scratch_buffers():
    a, _ = _tracker(_sine(440.0))
    b, _ = _tracker(_sine(440.0))
    a.start()
    b.start()
    assert a.session.detector._difference is not b.session.detector._difference


def test_mismatched_buffer_size_is_fatal():
    with pytest.raises(ConfigurationError):
        PitchTracker(FakeSource(buffer_size=1024), TrackerConfig(buffer_size=2048))


def test_demo_source_end_to_end():
    source = DemoSource(SAMPLE_RATE, BUFFER, frequency=330.0, seed=0)
    tracker = PitchTracker(source, clock=FakeClock())
    tracker.start()
    try:
        notes = [tracker.poll_and_stabilize() for _ in range(40)]
    finally:
        tracker.stop()

    detected = [n for n in notes if isinstance(n, NoteDatum)]
    assert len(detected) > 30
    assert {n.note_name for n in detected} == {"E4"}
