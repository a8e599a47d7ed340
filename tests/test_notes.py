from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from pitch_trace.notes import cents_color, format_cents, format_frequency, map_to_note


def test_a4_maps_exactly():
    note = map_to_note(440.0)
    assert note.note_name == "A4"
    assert note.pitch_class == "A"
    assert note.octave == 4
    assert note.nearest_midi == 69
    assert note.midi == 69.0
    assert note.cents == 0.0
    assert note.equal_frequency == 440.0
    assert note.note_index == 9


def test_a_sharp_4():
    note = map_to_note(466.16)
    assert note.note_name == "A#4"
    assert note.nearest_midi == 70
    assert note.cents == pytest.approx(0.0, abs=0.1)


@pytest.mark.parametrize(
    "frequency, name",
    [(196.0, "G3"), (261.63, "C4"), (293.66, "D4"), (659.25, "E5"), (1318.51, "E6"), (8.1758, "C-1")],
)
def test_common_notes(frequency, name):
    assert map_to_note(frequency).note_name == name


def test_cents_sign_follows_deviation():
    sharp = map_to_note(445.0)
    flat = map_to_note(435.0)
    assert sharp.note_name == flat.note_name == "A4"
    assert sharp.cents == pytest.approx(19.56, abs=0.01)
    assert flat.cents == pytest.approx(-19.79, abs=0.01)


def test_cents_stay_within_half_semitone():
    for frequency in [100.0, 123.4, 180.0, 333.3, 612.0, 987.6, 1500.0]:
        note = map_to_note(frequency)
        assert -50.0 < note.cents <= 50.0


def test_quarter_tone_midpoints_round_down_to_plus_fifty():
    for n in range(20, 110):
        frequency = 440.0 * 2.0 ** ((n + 0.5 - 69) / 12.0)
        note = map_to_note(frequency)
        assert -50.0 < note.cents <= 50.0
        assert note.nearest_midi in (n, n + 1)


def test_sub_audio_frequencies_keep_non_negative_index():
    note = map_to_note(5.0)
    assert note.nearest_midi < 0
    assert 0 <= note.note_index < 12
    assert note.octave == -2
    assert note.note_name == f"{note.pitch_class}-2"


@pytest.mark.parametrize("bad", [0.0, -1.0, float("nan"), float("inf"), None])
def test_invalid_frequencies_have_no_note(bad):
    assert map_to_note(bad) is None


def test_formatting():
    assert format_frequency(440.0) == "440.0 Hz"
    assert format_frequency(1318.514) == "1318.5 Hz"
    assert format_cents(3.21) == "+3.2 ¢"
    assert format_cents(-3.26) == "-3.3 ¢"
    assert format_cents(0.0) == "0.0 ¢"


def test_cents_color():
    assert cents_color(0.3) == (1.0, 1.0, 1.0)
    assert cents_color(float("nan")) == (1.0, 1.0, 1.0)
    assert cents_color(50.0) == (1.0, 0.0, 0.0)
    assert cents_color(-80.0) == (0.0, 0.0, 1.0)

    r, g, b = cents_color(25.0)
    assert r == 1.0
    assert g == b
    assert 0.0 < g < 1.0
