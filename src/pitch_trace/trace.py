"""Matplotlib-based scrolling pitch trace."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.collections import LineCollection

from .notes import CENTS_RANGE, NOTE_NAMES, NoteDatum, cents_color, format_cents, format_frequency
from .stabilizer import LostLock
from .tracker import PitchTracker

logger = logging.getLogger(__name__)

TIME_WINDOW_SEC = 10.0
MAX_LINK_GAP_SEC = 0.25
ROW_SPAN = 0.4

Segment = Tuple[Tuple[float, float], Tuple[float, float]]


@dataclass(frozen=True)
class TracePoint:
    timestamp: float
    frequency: float
    cents: float
    note_index: int


def note_row_position(note_index: int, cents: float) -> float:
    """Vertical plot position: the row of the pitch class, offset by cents."""

    limited = float(np.clip(cents, -CENTS_RANGE, CENTS_RANGE))
    return (note_index % 12) + (limited / CENTS_RANGE) * ROW_SPAN


class PitchHistory:
    """Accepted pitch points within a sliding time window."""

    def __init__(self, time_window: float = TIME_WINDOW_SEC) -> None:
        self.time_window = float(time_window)
        self.points: Deque[TracePoint] = deque()

    def __len__(self) -> int:
        return len(self.points)

    def add(self, timestamp: float, note: NoteDatum) -> TracePoint:
        point = TracePoint(
            timestamp=timestamp,
            frequency=note.frequency,
            cents=note.cents,
            note_index=note.note_index,
        )
        self.points.append(point)
        self.prune(timestamp)
        return point

    def prune(self, now: float) -> None:
        threshold = now - self.time_window
        while self.points and self.points[0].timestamp < threshold:
            self.points.popleft()

    def clear(self) -> None:
        self.points.clear()

    def segments(self, now: float) -> Tuple[List[Segment], List[Tuple[float, float, float]]]:
        """Line segments (x = seconds before ``now``) and their colours.

        Consecutive points are joined only when they share a note row and are
        at most ``MAX_LINK_GAP_SEC`` apart.
        """

        self.prune(now)
        segments: List[Segment] = []
        colors: List[Tuple[float, float, float]] = []
        previous: Optional[TracePoint] = None
        for point in self.points:
            if (
                previous is not None
                and point.timestamp - previous.timestamp <= MAX_LINK_GAP_SEC
                and point.note_index == previous.note_index
            ):
                segments.append(
                    (
                        (previous.timestamp - now, note_row_position(previous.note_index, previous.cents)),
                        (point.timestamp - now, note_row_position(point.note_index, point.cents)),
                    )
                )
                colors.append(cents_color(point.cents))
            previous = point
        return segments, colors


class PitchTraceView:
    """Interactive pitch trace polling a :class:`PitchTracker` on a canvas timer."""

    def __init__(
        self,
        tracker: PitchTracker,
        time_window: float = TIME_WINDOW_SEC,
        update_interval_ms: Optional[float] = None,
    ) -> None:
        self.tracker = tracker
        self.history = PitchHistory(time_window)
        if update_interval_ms is None:
            update_interval_ms = tracker.config.stabilizer.update_interval_ms
        self.update_interval_ms = int(round(update_interval_ms))
        self.paused = False

        self.fig, self.ax = plt.subplots(figsize=(12, 7))
        self.fig.patch.set_facecolor("#15181c")
        self.ax.set_facecolor("#15181c")
        self.ax.set_xlim(-time_window, 0.0)
        self.ax.set_ylim(-0.5, 11.5)
        self.ax.set_yticks(range(12))
        self.ax.set_yticklabels(NOTE_NAMES, color="#f4f6f8")
        self.ax.set_xticks(np.arange(-np.floor(time_window), 0.5, 1.0))
        self.ax.tick_params(axis="x", colors="#8a9099")
        self.ax.set_xlabel("Time (s)", color="#8a9099")
        self.ax.grid(True, axis="y", linestyle="--", color="white", alpha=0.4)
        self.ax.grid(True, axis="x", linestyle=":", color="white", alpha=0.05)

        self.lines = LineCollection([], linewidths=3.5, capstyle="round", joinstyle="round")
        self.ax.add_collection(self.lines)

        self.frequency_text = self.fig.text(0.08, 0.95, "", color="white", fontsize=16)
        self.note_text = self.fig.text(0.40, 0.95, "", color="white", fontsize=22, weight="bold")
        self.cents_text = self.fig.text(0.60, 0.95, "", color="white", fontsize=16)
        self.status_text = self.fig.text(0.08, 0.02, "", color="#8a9099", fontsize=11)
        self.reset_readouts()
        self.fig.canvas.mpl_connect("key_press_event", self.on_key)

    def on_key(self, event) -> None:
        if event.key in ("q", "escape"):
            plt.close(self.fig)
        elif event.key == "p":
            self.paused = not self.paused
            self.set_status("Paused." if self.paused else "Listening…")
        elif event.key == "c":
            self.history.clear()
            self.redraw()

    def set_status(self, message: str) -> None:
        self.status_text.set_text(message)
        self.fig.canvas.draw_idle()

    def reset_readouts(self) -> None:
        self.frequency_text.set_text("— Hz")
        self.note_text.set_text("—")
        self.cents_text.set_text("— ¢")
        self.cents_text.set_color("white")

    def render_readouts(self, note: NoteDatum) -> None:
        self.frequency_text.set_text(format_frequency(note.frequency))
        self.note_text.set_text(note.note_name)
        self.cents_text.set_text(format_cents(note.cents))
        self.cents_text.set_color(cents_color(note.cents))
        self.status_text.set_text("")

    def handle(self, output, timestamp: float) -> None:
        """Apply one stabilizer output to the readouts and history."""

        if isinstance(output, LostLock):
            self.reset_readouts()
            self.status_text.set_text("Listening… play a clear tone.")
        elif isinstance(output, NoteDatum):
            self.history.add(timestamp, output)
            self.render_readouts(output)

    def redraw(self) -> None:
        segments, colors = self.history.segments(self.tracker.clock())
        self.lines.set_segments(segments)
        self.lines.set_color(colors if colors else "white")
        self.fig.canvas.draw_idle()

    def run(self) -> None:
        self.tracker.start()
        self.set_status("Listening… play a sustained violin note.")
        try:

            def _on_timer(_):
                if self.paused:
                    return
                output = self.tracker.poll_and_stabilize()
                self.handle(output, self.tracker.clock())
                self.redraw()

            timer = self.fig.canvas.new_timer(interval=self.update_interval_ms)
            timer.add_callback(_on_timer, None)
            timer.start()
            plt.show()
        finally:
            self.tracker.stop()
            self.history.clear()
            logger.info("Pitch trace closed.")


__all__ = ["PitchHistory", "PitchTraceView", "TracePoint", "note_row_position"]
