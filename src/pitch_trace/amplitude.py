"""Frame level loudness measurements."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class AmplitudeReading:
    """RMS and peak magnitude of a single sample frame."""

    rms: float
    peak: float


def analyze_amplitude(frame: np.ndarray) -> AmplitudeReading:
    """Return the RMS and absolute peak of ``frame``."""

    samples = np.asarray(frame, dtype=np.float64)
    if samples.size == 0:
        return AmplitudeReading(rms=0.0, peak=0.0)
    rms = float(np.sqrt(np.mean(samples * samples)))
    peak = float(np.max(np.abs(samples)))
    return AmplitudeReading(rms=rms, peak=peak)


__all__ = ["AmplitudeReading", "analyze_amplitude"]
