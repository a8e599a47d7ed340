"""Audio source abstractions feeding the pitch tracker."""
from __future__ import annotations

import logging
import threading
from typing import Optional

import numpy as np
from scipy import signal

try:  # Optional dependency
    import sounddevice as sd
except Exception:  # pragma: no cover - optional dependency may be absent in CI
    sd = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)


class AudioSource:
    """Abstract live audio interface delivering fixed-size mono frames."""

    sample_rate: float
    buffer_size: int

    def start(self) -> None:  # pragma: no cover - interface method
        raise NotImplementedError

    def stop(self) -> None:  # pragma: no cover - interface method
        raise NotImplementedError

    def is_active(self) -> bool:  # pragma: no cover - interface method
        raise NotImplementedError

    def latest_frame(self) -> Optional[np.ndarray]:  # pragma: no cover - interface method
        """Return the newest ``buffer_size`` samples, or ``None`` if not ready."""
        raise NotImplementedError


class MicSource(AudioSource):
    """Audio source backed by a sounddevice input stream.

    The stream callback writes into a ring buffer holding the newest
    ``buffer_size`` samples; :meth:`latest_frame` hands out an ordered copy.
    """

    def __init__(
        self,
        sample_rate: int,
        buffer_size: int,
        device: Optional[str] = None,
        blocksize: int = 512,
    ) -> None:
        if sd is None:
            raise RuntimeError("sounddevice is not available. Install it or use --demo.")

        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self.device = device
        self.blocksize = blocksize
        self.stream = None
        self._ring = np.zeros(buffer_size, dtype=np.float32)
        self._write_pos = 0
        self._filled = 0
        self._lock = threading.Lock()
        self._running = threading.Event()

    def _callback(self, indata, frames, time_info, status):  # pragma: no cover - sounddevice callback
        if status:
            logger.debug("Input stream status: %s", status)
        if indata.ndim == 2 and indata.shape[1] > 1:
            mono = indata.mean(axis=1)
        else:
            mono = indata[:, 0] if indata.ndim == 2 else indata
        self._push(np.asarray(mono, dtype=np.float32))

    def _push(self, samples: np.ndarray) -> None:
        size = self.buffer_size
        if samples.size >= size:
            samples = samples[-size:]
        with self._lock:
            end = self._write_pos + samples.size
            if end <= size:
                self._ring[self._write_pos : end] = samples
            else:
                split = size - self._write_pos
                self._ring[self._write_pos :] = samples[:split]
                self._ring[: end - size] = samples[split:]
            self._write_pos = end % size
            self._filled = min(size, self._filled + samples.size)

    def start(self) -> None:
        if self.stream is not None:
            return
        with self._lock:
            self._ring.fill(0.0)
            self._write_pos = 0
            self._filled = 0
        # Raw capture: no OS side gain, echo cancellation or noise suppression.
        self.stream = sd.InputStream(
            channels=1,
            samplerate=self.sample_rate,
            blocksize=self.blocksize,
            device=self.device,
            callback=self._callback,
            dtype="float32",
            latency="low",
        )
        self.stream.start()
        self._running.set()
        logger.debug("Microphone stream started at %s Hz", self.sample_rate)

    def stop(self) -> None:
        self._running.clear()
        if self.stream is not None:
            try:  # pragma: no cover - depends on audio backend
                self.stream.stop()
                self.stream.close()
            except Exception:
                logger.warning("Failed to close the input stream cleanly", exc_info=True)
            self.stream = None

    def is_active(self) -> bool:
        return self._running.is_set() and self.stream is not None and bool(self.stream.active)

    def latest_frame(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._filled < self.buffer_size:
                return None
            return np.roll(self._ring, -self._write_pos)


class DemoSource(AudioSource):
    """Synthetic bowed-string tone used when no microphone is available.

    Each call to :meth:`latest_frame` advances the stream by ``hop`` samples.
    A short rest every ``phrase_sec`` seconds lets the tracker lose its lock.
    """

    def __init__(
        self,
        sample_rate: int,
        buffer_size: int,
        frequency: float = 440.0,
        hop: Optional[int] = None,
        amplitude: float = 0.3,
        vibrato_hz: float = 5.5,
        vibrato_cents: float = 15.0,
        noise_level: float = 0.005,
        phrase_sec: float = 3.0,
        rest_sec: float = 0.6,
        seed: Optional[int] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self.frequency = frequency
        self.hop = int(hop) if hop is not None else int(round(0.02 * sample_rate))
        self.amplitude = amplitude
        self.vibrato_hz = vibrato_hz
        self.vibrato_cents = vibrato_cents
        self.noise_level = noise_level
        self.phrase_sec = phrase_sec
        self.rest_sec = rest_sec
        self._rng = np.random.default_rng(seed)
        self.t = 0
        self._active = False

    def start(self) -> None:
        self._active = True

    def stop(self) -> None:
        self._active = False

    def is_active(self) -> bool:
        return self._active

    def latest_frame(self) -> Optional[np.ndarray]:
        if not self._active:
            return None
        self.t += self.hop
        start = max(0, self.t - self.buffer_size)
        n = np.arange(start, start + self.buffer_size)
        return self.render(n)

    def render(self, n: np.ndarray) -> np.ndarray:
        """Synthesize the demo signal at absolute sample indices ``n``."""

        sr = float(self.sample_rate)
        t = n / sr
        depth = 2.0 ** (self.vibrato_cents / 1200.0) - 1.0
        # Integrate the vibrato so the instantaneous frequency wobbles smoothly.
        phase = 2.0 * np.pi * self.frequency * (
            t - depth * np.cos(2.0 * np.pi * self.vibrato_hz * t) / (2.0 * np.pi * self.vibrato_hz)
        )
        tone = 0.6 * signal.sawtooth(phase) + 0.4 * np.sin(phase)

        envelope = np.ones_like(t)
        if self.phrase_sec > 0 and self.rest_sec > 0:
            position = np.mod(t, self.phrase_sec)
            envelope[position > self.phrase_sec - self.rest_sec] = 0.0
        y = self.amplitude * envelope * tone
        y += self.noise_level * self._rng.standard_normal(y.size)
        return y.astype(np.float32)


__all__ = ["AudioSource", "MicSource", "DemoSource", "sd"]
