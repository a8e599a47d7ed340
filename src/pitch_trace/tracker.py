"""Per-poll orchestration of amplitude gating, gain control and YIN."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import numpy as np

from .amplitude import analyze_amplitude
from .audio import AudioSource
from .autogain import AutoGainController
from .config import ConfigurationError, TrackerConfig
from .stabilizer import PitchStabilizer, StabilizedOutput
from .yin import YinPitchDetector

logger = logging.getLogger(__name__)

LOG_INTERVAL_SEC = 0.5


@dataclass(frozen=True)
class TrackerReading:
    """Result of a single :meth:`PitchTracker.poll`."""

    frequency: Optional[float]
    probability: float
    rms: float
    peak: float
    smoothed_rms: float
    gain: float
    normalized_peak: float = 0.0


@dataclass
class TrackingSession:
    """Mutable state that lives from :meth:`PitchTracker.start` to ``stop``."""

    autogain: AutoGainController
    detector: YinPitchDetector
    stabilizer: PitchStabilizer
    started_at: float
    polls: int = 0
    last_reading: Optional[TrackerReading] = None
    log_times: Dict[str, float] = field(default_factory=dict)


class PitchTracker:
    """Turn the newest frame of an :class:`AudioSource` into pitch readings."""

    def __init__(
        self,
        source: AudioSource,
        config: Optional[TrackerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if config is None:
            config = TrackerConfig()
        source_size = getattr(source, "buffer_size", config.buffer_size)
        if source_size != config.buffer_size:
            raise ConfigurationError(
                f"source delivers {source_size}-sample frames but buffer_size is {config.buffer_size}"
            )
        self.source = source
        self.config = config
        self.clock = clock
        self._session: Optional[TrackingSession] = None

    @property
    def session(self) -> Optional[TrackingSession]:
        return self._session

    @property
    def running(self) -> bool:
        return self._session is not None

    def start(self) -> None:
        if self._session is not None:
            logger.debug("Tracker already running, skipping start.")
            return
        self.source.start()
        cfg = self.config
        self._session = TrackingSession(
            autogain=AutoGainController(cfg.autogain),
            detector=YinPitchDetector(
                self.source.sample_rate,
                threshold=cfg.yin_threshold,
                probability_threshold=cfg.probability_threshold,
                buffer_size=cfg.buffer_size,
            ),
            stabilizer=PitchStabilizer(cfg.stabilizer),
            started_at=self.clock(),
        )
        logger.debug(
            "Pitch tracker started (sample rate %s Hz, buffer %d)",
            self.source.sample_rate,
            cfg.buffer_size,
        )

    def stop(self) -> None:
        self.source.stop()
        if self._session is not None:
            logger.debug(
                "Pitch tracker stopped after %d polls (%.1f s)",
                self._session.polls,
                self.clock() - self._session.started_at,
            )
        self._session = None

    def poll(self) -> Optional[TrackerReading]:
        """Analyse the newest frame, or return ``None`` when no input is available."""

        return self._poll(self.clock())

    def poll_and_stabilize(self) -> StabilizedOutput:
        """Poll once and pass the reading through the session's stabilizer."""

        session = self._session
        if session is None:
            return None
        now = self.clock()
        reading = self._poll(now)
        return session.stabilizer.update(reading, now)

    def _poll(self, now: float) -> Optional[TrackerReading]:
        session = self._session
        if session is None or not self.source.is_active():
            return None

        frame = self.source.latest_frame()
        if frame is None or np.size(frame) < self.config.buffer_size:
            return None
        session.polls += 1

        amplitude = analyze_amplitude(frame)
        metrics = session.autogain.update(amplitude.rms, now)
        normalized = session.autogain.apply(frame)
        normalized_peak = float(np.max(np.abs(normalized))) if normalized.size else 0.0

        frequency: Optional[float] = None
        probability = 0.0
        if amplitude.rms < self.config.rms_threshold:
            self._debug(
                session,
                "low_rms",
                now,
                "RMS %.5f below threshold %.5f, skipping pitch detection.",
                amplitude.rms,
                self.config.rms_threshold,
            )
        else:
            estimate = session.detector.estimate(frame)
            if estimate is None:
                self._debug(session, "no_pitch", now, "YIN returned no pitch candidate (rms %.4f).", amplitude.rms)
            else:
                self._debug(
                    session,
                    "detection",
                    now,
                    "Detected pitch %.2f Hz (p=%.3f).",
                    estimate.frequency,
                    estimate.probability,
                )
                frequency = estimate.frequency
                probability = estimate.probability

        reading = TrackerReading(
            frequency=frequency,
            probability=probability,
            rms=amplitude.rms,
            peak=amplitude.peak,
            smoothed_rms=metrics.smoothed_rms,
            gain=metrics.gain,
            normalized_peak=normalized_peak,
        )
        session.last_reading = reading
        return reading

    @staticmethod
    def _debug(session: TrackingSession, kind: str, now: float, msg: str, *args: object) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        last = session.log_times.get(kind)
        if last is not None and now - last < LOG_INTERVAL_SEC:
            return
        session.log_times[kind] = now
        logger.debug(msg, *args)


__all__ = ["PitchTracker", "TrackerReading", "TrackingSession"]
