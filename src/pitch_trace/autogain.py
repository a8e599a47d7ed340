"""Automatic gain control for the live input signal."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .config import AutoGainConfig
from .utils import clamp

logger = logging.getLogger(__name__)

MIN_TIME_CONSTANT = 1e-3


@dataclass
class GainState:
    smoothed_rms: Optional[float] = None
    current_gain: float = 1.0
    target_gain: float = 1.0
    last_update_time: Optional[float] = None


@dataclass(frozen=True)
class GainMetrics:
    """Diagnostics returned from :meth:`AutoGainController.update`."""

    smoothed_rms: float
    gain: float
    target_gain: float


def approach_gain(current: float, target: float, dt: float, slew: float) -> float:
    """Move ``current`` towards ``target`` along a first-order exponential.

    After ``dt`` seconds the remaining distance to the target has shrunk by a
    factor of ``exp(-dt / slew)``. A zero ``dt`` leaves the gain untouched.
    """

    if dt <= 0.0:
        return current
    decay = math.exp(-dt / max(slew, MIN_TIME_CONSTANT))
    return target + (current - target) * decay


class AutoGainController:
    """Track a smoothed RMS level and steer a gain towards ``target_rms``."""

    def __init__(self, config: Optional[AutoGainConfig] = None) -> None:
        if config is None:
            config = AutoGainConfig()
        self.config = config
        self.target_rms = float(config.target_rms)
        self.smoothing_time = max(float(config.smoothing_time), MIN_TIME_CONSTANT)
        self.gain_slew = max(float(config.gain_slew), MIN_TIME_CONSTANT)
        self.min_gain = float(config.min_gain)
        self.max_gain = float(config.max_gain)
        self.epsilon = float(config.epsilon)
        self.reset()

    def reset(self) -> None:
        unity = self._clamp(1.0)
        self.state = GainState(current_gain=unity, target_gain=unity)

    @property
    def gain(self) -> float:
        return self.state.current_gain

    def update(self, rms: float, now: float) -> GainMetrics:
        """Feed one frame RMS measured at monotonic time ``now`` (seconds)."""

        state = self.state
        if rms is None or not math.isfinite(rms):
            logger.debug("Ignoring non-finite RMS value %r", rms)
            return self._metrics()

        if state.smoothed_rms is None:
            state.smoothed_rms = float(rms)
            dt = 0.0
        else:
            dt = 0.0 if state.last_update_time is None else max(0.0, now - state.last_update_time)
            # Coincident timestamps count as a full update.
            alpha = 1.0 - math.exp(-dt / self.smoothing_time) if dt > 0.0 else 1.0
            state.smoothed_rms = (1.0 - alpha) * state.smoothed_rms + alpha * float(rms)

        state.target_gain = self._clamp(self.target_rms / (state.smoothed_rms + self.epsilon))
        state.current_gain = self._clamp(
            approach_gain(state.current_gain, state.target_gain, dt, self.gain_slew)
        )
        state.last_update_time = now
        return self._metrics()

    def apply(self, frame: np.ndarray) -> np.ndarray:
        """Return ``frame`` scaled by the gain currently in effect."""

        scaled = np.asarray(frame, dtype=np.float32) * np.float32(self.state.current_gain)
        return np.clip(scaled, -1.0, 1.0)

    def _metrics(self) -> GainMetrics:
        smoothed = self.state.smoothed_rms
        return GainMetrics(
            smoothed_rms=0.0 if smoothed is None else smoothed,
            gain=self.state.current_gain,
            target_gain=self.state.target_gain,
        )

    def _clamp(self, value: float) -> float:
        return clamp(value, self.min_gain, self.max_gain)


__all__ = ["AutoGainController", "GainMetrics", "GainState", "approach_gain"]
