"""Command-line entrypoints for the live pitch trace."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Optional

from .audio import AudioSource, DemoSource, MicSource, sd
from .config import AutoGainConfig, StabilizerConfig, TrackerConfig
from .notes import NoteDatum, format_cents, format_frequency
from .stabilizer import LostLock
from .tracker import PitchTracker
from .utils import dbfs

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Live violin pitch tracker: YIN estimate, note name and cents deviation."
    )
    parser.add_argument("--samplerate", type=int, default=48000, help="Input sample rate (Hz).")
    parser.add_argument(
        "--buffer-size",
        type=int,
        default=TrackerConfig.buffer_size,
        help="Analysis frame length in samples (power of two).",
    )
    parser.add_argument("--device", type=str, default=None, help="sounddevice input device.")
    parser.add_argument("--demo", action="store_true", help="Use the synthetic demo tone.")
    parser.add_argument(
        "--demo-frequency",
        type=float,
        default=440.0,
        help="Fundamental of the demo tone (Hz).",
    )
    parser.add_argument("--yin-threshold", type=float, default=TrackerConfig.yin_threshold)
    parser.add_argument(
        "--probability-threshold",
        type=float,
        default=TrackerConfig.probability_threshold,
        help="Minimum YIN probability for a detection to count.",
    )
    parser.add_argument(
        "--rms-threshold",
        type=float,
        default=TrackerConfig.rms_threshold,
        help="Frames quieter than this RMS are treated as silence.",
    )
    parser.add_argument("--target-rms", type=float, default=AutoGainConfig.target_rms)
    parser.add_argument("--smoothing-time", type=float, default=AutoGainConfig.smoothing_time)
    parser.add_argument("--min-gain", type=float, default=AutoGainConfig.min_gain)
    parser.add_argument("--max-gain", type=float, default=AutoGainConfig.max_gain)
    parser.add_argument("--gain-slew", type=float, default=AutoGainConfig.gain_slew)
    parser.add_argument(
        "--interval-ms",
        type=float,
        default=StabilizerConfig.update_interval_ms,
        help="Polling interval in milliseconds.",
    )
    parser.add_argument(
        "--console",
        action="store_true",
        help="Print readouts to the terminal instead of opening the plot window.",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop the console loop after this many seconds.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> TrackerConfig:
    return TrackerConfig(
        buffer_size=args.buffer_size,
        yin_threshold=args.yin_threshold,
        probability_threshold=args.probability_threshold,
        rms_threshold=args.rms_threshold,
        autogain=AutoGainConfig(
            target_rms=args.target_rms,
            smoothing_time=args.smoothing_time,
            min_gain=args.min_gain,
            max_gain=args.max_gain,
            gain_slew=args.gain_slew,
        ),
        stabilizer=StabilizerConfig(update_interval_ms=args.interval_ms),
    )


def create_source(args: argparse.Namespace) -> AudioSource:
    hop = int(round(args.samplerate * args.interval_ms / 1000.0))
    if args.demo or sd is None:
        return DemoSource(args.samplerate, args.buffer_size, frequency=args.demo_frequency, hop=hop)
    try:
        return MicSource(args.samplerate, args.buffer_size, device=args.device)
    except Exception as exc:  # pragma: no cover - interactive fallback
        logger.warning("Could not initialize microphone input: %s", exc)
        logger.warning("Falling back to demo mode. Use --device to select input or install sounddevice.")
        return DemoSource(args.samplerate, args.buffer_size, frequency=args.demo_frequency, hop=hop)


def describe(output, tracker: PitchTracker) -> Optional[str]:
    """Render one stabilizer output as a console line."""

    if isinstance(output, LostLock):
        return "Listening… play a clear tone."
    if isinstance(output, NoteDatum):
        session = tracker.session
        gain = session.autogain.gain if session is not None else 1.0
        level = session.autogain.state.smoothed_rms if session is not None else None
        level_text = f"{dbfs(level):6.1f} dBFS" if level is not None else "   — dBFS"
        reading = session.last_reading if session is not None else None
        peak = reading.normalized_peak if reading is not None else 0.0
        return (
            f"{output.note_name:<4} {format_frequency(output.frequency):>10}  "
            f"{format_cents(output.cents):>9}  level {level_text}  gain {gain:6.2f}  peak {peak:4.2f}"
        )
    return None


def run_console(tracker: PitchTracker, duration: Optional[float] = None, sleep=time.sleep) -> int:
    interval = tracker.config.stabilizer.update_interval_ms / 1000.0
    tracker.start()
    started = time.monotonic()
    logger.info("Listening… play a sustained violin note. Press Ctrl+C to stop.")
    try:
        while duration is None or time.monotonic() - started < duration:
            tick = time.monotonic()
            line = describe(tracker.poll_and_stabilize(), tracker)
            if line is not None:
                print(line, flush=True)
            elapsed = time.monotonic() - tick
            sleep(max(interval - elapsed, 0.0))
    except KeyboardInterrupt:
        logger.info("Stopping pitch tracking.")
    finally:
        tracker.stop()
    return 0


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    config = build_config(args)
    source = create_source(args)
    tracker = PitchTracker(source, config)

    if args.console:
        raise SystemExit(run_console(tracker, args.duration))

    from .trace import PitchTraceView

    PitchTraceView(tracker).run()


__all__ = ["parse_args", "build_config", "create_source", "describe", "run_console", "main"]
