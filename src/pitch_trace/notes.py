"""Equal-tempered note mapping relative to A4 = 440 Hz."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .utils import is_finite_number

A4_FREQUENCY = 440.0
A4_MIDI = 69
CENTS_RANGE = 50.0

NOTE_NAMES = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")


@dataclass(frozen=True)
class NoteDatum:
    frequency: float
    midi: float
    nearest_midi: int
    note_name: str
    pitch_class: str
    octave: int
    cents: float
    equal_frequency: float

    @property
    def note_index(self) -> int:
        """Chromatic index of the note, 0 for C through 11 for B."""
        return self.nearest_midi % 12


def map_to_note(frequency: float) -> Optional[NoteDatum]:
    """Convert ``frequency`` in Hz to the nearest equal-tempered note.

    Returns ``None`` for non-positive or non-finite input. Exact quarter-tone
    midpoints resolve to the lower note so that ``cents`` lies in (-50, 50].
    """

    if not is_finite_number(frequency) or frequency <= 0:
        return None

    frequency = float(frequency)
    midi = A4_MIDI + 12.0 * math.log2(frequency / A4_FREQUENCY)
    nearest_midi = int(math.ceil(midi - 0.5))
    note_index = nearest_midi % 12
    octave = nearest_midi // 12 - 1
    pitch_class = NOTE_NAMES[note_index]
    equal_frequency = A4_FREQUENCY * 2.0 ** ((nearest_midi - A4_MIDI) / 12.0)
    # Same value used for rounding, so midpoints land on +50 exactly.
    cents = 100.0 * (midi - nearest_midi)

    return NoteDatum(
        frequency=frequency,
        midi=midi,
        nearest_midi=nearest_midi,
        note_name=f"{pitch_class}{octave}",
        pitch_class=pitch_class,
        octave=octave,
        cents=cents,
        equal_frequency=equal_frequency,
    )


def format_frequency(frequency: float) -> str:
    return f"{frequency:.1f} Hz"


def format_cents(cents: float) -> str:
    sign = "+" if cents > 0 else ""
    return f"{sign}{cents:.1f} ¢"


def cents_color(cents: float) -> Tuple[float, float, float]:
    """RGB colour (0..1) for a tuning deviation: red when sharp, blue when flat."""

    if not is_finite_number(cents):
        return (1.0, 1.0, 1.0)
    deviation = abs(cents)
    if deviation <= 0.5:
        return (1.0, 1.0, 1.0)

    ratio = min(deviation, CENTS_RANGE) / CENTS_RANGE
    channel = round(255 * (1.0 - ratio)) / 255.0
    if cents > 0:
        return (1.0, channel, channel)
    return (channel, channel, 1.0)


__all__ = [
    "NOTE_NAMES",
    "NoteDatum",
    "map_to_note",
    "format_frequency",
    "format_cents",
    "cents_color",
]
