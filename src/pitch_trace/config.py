"""Configuration dataclasses for a pitch tracking session."""

from __future__ import annotations

import dataclasses
import numbers
from typing import Any, Dict, Mapping

from .utils import is_finite_number, is_power_of_two

MIN_BUFFER_SIZE = 64


class ConfigurationError(ValueError):
    """Raised when a configuration value would break the tracking algorithms."""


def _require_positive(name: str, value: float) -> None:
    if not is_finite_number(value) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive finite number, got {value!r}")


@dataclasses.dataclass
class AutoGainConfig:
    """Settings for the automatic gain controller."""

    target_rms: float = 0.2
    smoothing_time: float = 0.6
    min_gain: float = 0.5
    max_gain: float = 200.0
    gain_slew: float = 0.1
    epsilon: float = 1e-6

    def __post_init__(self) -> None:
        for name in ("target_rms", "smoothing_time", "min_gain", "max_gain", "gain_slew", "epsilon"):
            _require_positive(name, getattr(self, name))
        if self.min_gain > self.max_gain:
            raise ConfigurationError(
                f"min_gain ({self.min_gain}) must not exceed max_gain ({self.max_gain})"
            )


@dataclasses.dataclass
class StabilizerConfig:
    """Validation limits applied to successive pitch readings."""

    min_valid_freq: float = 110.0  # A2
    max_valid_freq: float = 1660.0  # G#6
    max_jump_hz: float = 160.0
    max_gap_ms: float = 200.0
    update_interval_ms: float = 20.0
    miss_threshold: int = 4

    def __post_init__(self) -> None:
        for name in ("min_valid_freq", "max_valid_freq", "max_jump_hz", "max_gap_ms", "update_interval_ms"):
            _require_positive(name, getattr(self, name))
        if self.min_valid_freq >= self.max_valid_freq:
            raise ConfigurationError("min_valid_freq must be below max_valid_freq")
        if int(self.miss_threshold) < 1:
            raise ConfigurationError("miss_threshold must be at least 1")
        self.miss_threshold = int(self.miss_threshold)


@dataclasses.dataclass
class TrackerConfig:
    """Configuration accepted by :class:`~pitch_trace.tracker.PitchTracker`."""

    buffer_size: int = 2048
    yin_threshold: float = 0.1
    probability_threshold: float = 0.15
    rms_threshold: float = 0.01
    autogain: AutoGainConfig = dataclasses.field(default_factory=AutoGainConfig)
    stabilizer: StabilizerConfig = dataclasses.field(default_factory=StabilizerConfig)

    def __post_init__(self) -> None:
        if isinstance(self.buffer_size, bool) or not isinstance(self.buffer_size, numbers.Integral):
            raise ConfigurationError(f"buffer_size must be an integer, got {self.buffer_size!r}")
        self.buffer_size = int(self.buffer_size)
        # YIN searches lags over half a frame.
        if not is_power_of_two(self.buffer_size) or self.buffer_size < MIN_BUFFER_SIZE:
            raise ConfigurationError(
                f"buffer_size must be a power of two >= {MIN_BUFFER_SIZE}, got {self.buffer_size}"
            )
        _require_positive("yin_threshold", self.yin_threshold)
        if not is_finite_number(self.probability_threshold) or not 0.0 <= self.probability_threshold <= 1.0:
            raise ConfigurationError("probability_threshold must lie in [0, 1]")
        if not is_finite_number(self.rms_threshold) or self.rms_threshold < 0:
            raise ConfigurationError("rms_threshold must be a non-negative finite number")

    @staticmethod
    def from_dict(raw: Mapping[str, Any]) -> "TrackerConfig":
        """Build a config from a mapping, accepting flat camelCase option names."""

        normalized: Dict[str, Any] = {}
        for key, value in raw.items():
            normalized[_ALIASES.get(key, key)] = value

        autogain_data: Dict[str, Any] = {}
        autogain_raw = normalized.pop("autogain", None)
        if isinstance(autogain_raw, AutoGainConfig):
            autogain_data.update(dataclasses.asdict(autogain_raw))
        elif isinstance(autogain_raw, Mapping):
            autogain_data.update({_ALIASES.get(k, k): v for k, v in autogain_raw.items()})

        stabilizer_data: Dict[str, Any] = {}
        stabilizer_raw = normalized.pop("stabilizer", None)
        if isinstance(stabilizer_raw, StabilizerConfig):
            stabilizer_data.update(dataclasses.asdict(stabilizer_raw))
        elif isinstance(stabilizer_raw, Mapping):
            stabilizer_data.update({_ALIASES.get(k, k): v for k, v in stabilizer_raw.items()})

        autogain_fields = {f.name for f in dataclasses.fields(AutoGainConfig)}
        stabilizer_fields = {f.name for f in dataclasses.fields(StabilizerConfig)}
        for name in list(normalized):
            if name in autogain_fields:
                autogain_data[name] = normalized.pop(name)
            elif name in stabilizer_fields:
                stabilizer_data[name] = normalized.pop(name)

        known = {f.name for f in dataclasses.fields(TrackerConfig)}
        filtered = {k: v for k, v in normalized.items() if k in known}
        filtered["autogain"] = AutoGainConfig(
            **{k: v for k, v in autogain_data.items() if k in autogain_fields}
        )
        filtered["stabilizer"] = StabilizerConfig(
            **{k: v for k, v in stabilizer_data.items() if k in stabilizer_fields}
        )
        return TrackerConfig(**filtered)


_ALIASES = {
    "bufferSize": "buffer_size",
    "yinThreshold": "yin_threshold",
    "probabilityThreshold": "probability_threshold",
    "rmsThreshold": "rms_threshold",
    "autoGainOptions": "autogain",
    "targetRms": "target_rms",
    "smoothingTime": "smoothing_time",
    "minGain": "min_gain",
    "maxGain": "max_gain",
    "gainSlew": "gain_slew",
    "minValidFreq": "min_valid_freq",
    "maxValidFreq": "max_valid_freq",
    "maxJumpHz": "max_jump_hz",
    "maxGapMs": "max_gap_ms",
    "updateIntervalMs": "update_interval_ms",
    "missThreshold": "miss_threshold",
}


__all__ = ["AutoGainConfig", "ConfigurationError", "StabilizerConfig", "TrackerConfig"]
