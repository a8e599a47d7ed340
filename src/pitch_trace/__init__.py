"""Real-time monophonic pitch tracking with YIN, auto gain and note mapping."""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "AmplitudeReading",
    "analyze_amplitude",
    "AutoGainController",
    "GainMetrics",
    "approach_gain",
    "AutoGainConfig",
    "ConfigurationError",
    "StabilizerConfig",
    "TrackerConfig",
    "PitchEstimate",
    "YinPitchDetector",
    "PitchTracker",
    "TrackerReading",
    "LostLock",
    "PitchStabilizer",
    "NoteDatum",
    "map_to_note",
    "AudioSource",
    "DemoSource",
    "MicSource",
    "PitchHistory",
    "PitchTraceView",
    "main",
]

_EXPORT_MAP = {
    "AmplitudeReading": ("pitch_trace.amplitude", "AmplitudeReading"),
    "analyze_amplitude": ("pitch_trace.amplitude", "analyze_amplitude"),
    "AutoGainController": ("pitch_trace.autogain", "AutoGainController"),
    "GainMetrics": ("pitch_trace.autogain", "GainMetrics"),
    "approach_gain": ("pitch_trace.autogain", "approach_gain"),
    "AutoGainConfig": ("pitch_trace.config", "AutoGainConfig"),
    "ConfigurationError": ("pitch_trace.config", "ConfigurationError"),
    "StabilizerConfig": ("pitch_trace.config", "StabilizerConfig"),
    "TrackerConfig": ("pitch_trace.config", "TrackerConfig"),
    "PitchEstimate": ("pitch_trace.yin", "PitchEstimate"),
    "YinPitchDetector": ("pitch_trace.yin", "YinPitchDetector"),
    "PitchTracker": ("pitch_trace.tracker", "PitchTracker"),
    "TrackerReading": ("pitch_trace.tracker", "TrackerReading"),
    "LostLock": ("pitch_trace.stabilizer", "LostLock"),
    "PitchStabilizer": ("pitch_trace.stabilizer", "PitchStabilizer"),
    "NoteDatum": ("pitch_trace.notes", "NoteDatum"),
    "map_to_note": ("pitch_trace.notes", "map_to_note"),
    "AudioSource": ("pitch_trace.audio", "AudioSource"),
    "DemoSource": ("pitch_trace.audio", "DemoSource"),
    "MicSource": ("pitch_trace.audio", "MicSource"),
    "PitchHistory": ("pitch_trace.trace", "PitchHistory"),
    "PitchTraceView": ("pitch_trace.trace", "PitchTraceView"),
    "main": ("pitch_trace.cli", "main"),
}


if TYPE_CHECKING:  # pragma: no cover - only for type checkers
    from pitch_trace.amplitude import AmplitudeReading, analyze_amplitude
    from pitch_trace.audio import AudioSource, DemoSource, MicSource
    from pitch_trace.autogain import AutoGainController, GainMetrics, approach_gain
    from pitch_trace.cli import main
    from pitch_trace.config import (
        AutoGainConfig,
        ConfigurationError,
        StabilizerConfig,
        TrackerConfig,
    )
    from pitch_trace.notes import NoteDatum, map_to_note
    from pitch_trace.stabilizer import LostLock, PitchStabilizer
    from pitch_trace.trace import PitchHistory, PitchTraceView
    from pitch_trace.tracker import PitchTracker, TrackerReading
    from pitch_trace.yin import PitchEstimate, YinPitchDetector


def __getattr__(name: str) -> Any:
    """Lazily import submodules on demand so matplotlib loads only for the trace view."""

    if name in _EXPORT_MAP:
        module_name, attribute = _EXPORT_MAP[name]
        module = import_module(module_name)
        value = getattr(module, attribute)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(set(__all__))
