"""YIN fundamental frequency estimator for monophonic frames.

The estimator follows the four time-domain stages of de Cheveigné and
Kawahara's YIN: squared difference function, cumulative mean normalized
difference (CMND), absolute threshold search and parabolic interpolation.
All intermediate arrays are allocated once per detector and reused, since the
O(N^2) difference function runs on every poll.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .config import ConfigurationError
from .utils import is_power_of_two


@dataclass(frozen=True)
class PitchEstimate:
    frequency: float
    probability: float


class YinPitchDetector:
    """Estimate the fundamental frequency of fixed-size sample frames."""

    def __init__(
        self,
        sample_rate: float,
        threshold: float = 0.1,
        probability_threshold: float = 0.15,
        buffer_size: int = 2048,
    ) -> None:
        if not math.isfinite(sample_rate) or sample_rate <= 0:
            raise ConfigurationError(f"sample_rate must be positive, got {sample_rate!r}")
        if not is_power_of_two(int(buffer_size)) or buffer_size < 8:
            raise ConfigurationError(f"buffer_size must be a power of two, got {buffer_size!r}")

        self.sample_rate = float(sample_rate)
        self.threshold = float(threshold)
        self.probability_threshold = float(probability_threshold)
        self.buffer_size = int(buffer_size)
        self.half_buffer = self.buffer_size // 2

        self._frame = np.zeros(self.buffer_size, dtype=np.float64)
        self._difference = np.zeros(self.half_buffer, dtype=np.float64)
        self._cmnd = np.ones(self.half_buffer, dtype=np.float64)
        self._running_sum = np.zeros(self.half_buffer, dtype=np.float64)
        self._scratch = np.zeros(self.half_buffer, dtype=np.float64)
        self._lags = np.arange(self.half_buffer, dtype=np.float64)

    @property
    def cmnd(self) -> np.ndarray:
        """Read-only view of the CMND computed for the last frame."""
        view = self._cmnd.view()
        view.flags.writeable = False
        return view

    def estimate(self, frame: np.ndarray) -> Optional[PitchEstimate]:
        """Return the pitch of ``frame`` or ``None`` when no stable period is found.

        Only the first ``buffer_size`` samples are analysed. Estimates whose
        probability falls below ``probability_threshold`` are rejected.
        """

        samples = np.asarray(frame)
        if samples.ndim != 1 or samples.size < self.buffer_size:
            raise ValueError(
                f"expected a 1-D frame of at least {self.buffer_size} samples, got shape {samples.shape}"
            )
        np.copyto(self._frame, samples[: self.buffer_size])

        self._difference_function()
        self._cumulative_mean_normalized_difference()

        tau = self._absolute_threshold()
        if tau == -1:
            return None

        better_tau = self._parabolic_interpolation(tau)
        frequency = self.sample_rate / better_tau
        probability = 1.0 - float(self._cmnd[tau])

        if probability < self.probability_threshold:
            return None
        if not math.isfinite(frequency) or frequency <= 0.0:
            return None

        return PitchEstimate(frequency=float(frequency), probability=min(1.0, probability))

    def _difference_function(self) -> None:
        half = self.half_buffer
        frame = self._frame
        head = frame[:half]
        diff = self._difference
        delta = self._scratch

        diff[0] = 0.0
        for tau in range(1, half):
            np.subtract(head, frame[tau : tau + half], out=delta)
            diff[tau] = np.dot(delta, delta)

    def _cumulative_mean_normalized_difference(self) -> None:
        diff = self._difference
        cmnd = self._cmnd
        running = self._running_sum
        weighted = self._scratch

        np.cumsum(diff[1:], out=running[1:])
        np.multiply(diff, self._lags, out=weighted)

        cmnd.fill(1.0)
        np.divide(weighted[1:], running[1:], out=cmnd[1:], where=running[1:] != 0.0)

    def _absolute_threshold(self) -> int:
        cmnd = self._cmnd
        half = self.half_buffer

        below = np.flatnonzero(cmnd[2:] < self.threshold)
        if below.size == 0:
            return -1

        tau = int(below[0]) + 2
        # Walk down to the bottom of the dip instead of its first sample.
        while tau + 1 < half and cmnd[tau + 1] < cmnd[tau]:
            tau += 1
        return tau

    def _parabolic_interpolation(self, tau: int) -> float:
        if tau < 1 or tau + 1 >= self.half_buffer:
            return float(tau)

        s0 = float(self._cmnd[tau - 1])
        s1 = float(self._cmnd[tau])
        s2 = float(self._cmnd[tau + 1])
        denominator = 2.0 * (2.0 * s1 - s2 - s0)
        if denominator == 0.0:
            return float(tau)

        better_tau = tau + (s2 - s0) / denominator
        if not math.isfinite(better_tau) or better_tau <= 0.0:
            return float(tau)
        return better_tau


__all__ = ["PitchEstimate", "YinPitchDetector"]
