"""Validation of successive pitch readings for real-time display."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

from .config import StabilizerConfig
from .notes import NoteDatum, map_to_note
from .utils import clamp

if TYPE_CHECKING:  # pragma: no cover - only for type checking
    from .tracker import TrackerReading

logger = logging.getLogger(__name__)


@dataclass
class StabilizerState:
    miss_counter: int = 0
    last_accepted_frequency: Optional[float] = None
    last_accepted_timestamp: Optional[float] = None
    lock_lost: bool = False


@dataclass(frozen=True)
class LostLock:
    """Emitted once when the tracker has missed ``missed_polls`` polls in a row."""

    missed_polls: int


StabilizedOutput = Union[NoteDatum, LostLock, None]


class PitchStabilizer:
    """Gate raw readings through miss counting, clamping and jump rejection.

    The gates run in order. A reading without a usable frequency is a miss;
    otherwise it is clamped into the valid range and compared with the last
    accepted value. A rejected jump leaves the whole state untouched, so it
    neither resets nor extends a run of misses.
    """

    def __init__(self, config: Optional[StabilizerConfig] = None) -> None:
        if config is None:
            config = StabilizerConfig()
        self.config = config
        self.state = StabilizerState()

    def reset(self) -> None:
        self.state = StabilizerState()

    def update(self, reading: Optional["TrackerReading"], timestamp: float) -> StabilizedOutput:
        """Process one poll result taken at ``timestamp`` seconds."""

        cfg = self.config
        state = self.state

        frequency = None if reading is None else reading.frequency
        if frequency is None or not math.isfinite(frequency) or frequency <= 0.0:
            state.miss_counter += 1
            if state.miss_counter == cfg.miss_threshold:
                state.lock_lost = True
                logger.debug("Lost pitch lock after %d missed polls", state.miss_counter)
                return LostLock(missed_polls=state.miss_counter)
            return None

        frequency = clamp(float(frequency), cfg.min_valid_freq, cfg.max_valid_freq)

        if state.last_accepted_timestamp is not None and state.last_accepted_frequency is not None:
            elapsed_ms = (timestamp - state.last_accepted_timestamp) * 1000.0
            if elapsed_ms < cfg.max_gap_ms:
                jump = abs(frequency - state.last_accepted_frequency)
                if jump > cfg.max_jump_hz:
                    logger.debug(
                        "Rejected %.1f Hz jump after %.0f ms", jump, elapsed_ms
                    )
                    return None

        note = map_to_note(frequency)
        if note is None:  # pragma: no cover - clamped frequencies are always positive
            return None

        state.miss_counter = 0
        state.lock_lost = False
        state.last_accepted_frequency = frequency
        state.last_accepted_timestamp = timestamp
        return note


__all__ = ["LostLock", "PitchStabilizer", "StabilizedOutput", "StabilizerState"]
