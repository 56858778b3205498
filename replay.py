"""Replay a recorded recognition stream through the engine on a simulated clock.

Input is JSON Lines, one step per line::

    {"at_ms": 0, "result_index": 0, "results": [{"text": "good", "is_final": false}]}
    {"at_ms": 400, "result_index": 0, "results": [{"text": "good morning", "is_final": true}]}
    {"at_ms": 5000, "command": "clear"}

Usage: python -m replay session.jsonl --trigger "good morning" --pause-ms 1500
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from typing import Iterable, Optional, TextIO

from config import (
    DEFAULT_PAUSE_DURATION_MS,
    DEFAULT_RECENCY_WINDOW_CHARS,
    DEFAULT_SETTLE_DELAY_MS,
    EngineConfig,
)
from engine import TranscriptEngine
from models import (
    EngineEvent,
    InterimUpdated,
    PlaybackRequested,
    RecognitionEvent,
    RecognitionSegment,
    TranscriptCleared,
    TranscriptUpdated,
    TriggerDetected,
)
from timers import ManualScheduler
from triggers import TriggerSet

logger = logging.getLogger(__name__)

COMMANDS = ("start", "stop", "clear")


@dataclass
class ReplayStep:
    at_ms: int
    event: Optional[RecognitionEvent] = None
    command: Optional[str] = None


def parse_steps(lines: Iterable[str]) -> list[ReplayStep]:
    steps: list[ReplayStep] = []
    for number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            raw = json.loads(line)
            at_ms = int(raw.get("at_ms", 0))
            command = raw.get("command")
            if command is not None:
                if command not in COMMANDS:
                    raise ValueError(f"unknown command {command!r}")
                steps.append(ReplayStep(at_ms=at_ms, command=command))
                continue
            segments = [
                RecognitionSegment(text=str(r.get("text", "")), is_final=bool(r.get("is_final")))
                for r in raw.get("results", [])
            ]
            event = RecognitionEvent(
                result_index=int(raw.get("result_index", 0)),
                results=segments,
                base_index=int(raw.get("base_index", 0)),
            )
            steps.append(ReplayStep(at_ms=at_ms, event=event))
        except (ValueError, TypeError, AttributeError) as exc:
            raise ValueError(f"line {number}: {exc}") from exc
    steps.sort(key=lambda step: step.at_ms)
    return steps


def describe(event: EngineEvent) -> str:
    if isinstance(event, TranscriptUpdated):
        return f"TranscriptUpdated  {event.committed_text!r}"
    if isinstance(event, TranscriptCleared):
        return f"TranscriptCleared  ({event.reason})"
    if isinstance(event, InterimUpdated):
        return f"InterimUpdated     {event.text!r}"
    if isinstance(event, TriggerDetected):
        return f"TriggerDetected    {event.trigger.phrase!r} ({event.tier.value})"
    if isinstance(event, PlaybackRequested):
        return f"PlaybackRequested  {event.trigger.phrase!r}"
    return repr(event)


def replay(
    steps: Iterable[ReplayStep],
    triggers: TriggerSet,
    config: Optional[EngineConfig] = None,
    playback_ms: int = 500,
    show_interim: bool = False,
    out: Optional[TextIO] = None,
) -> list[tuple[float, EngineEvent]]:
    """Run ``steps`` and return every emitted event with its simulated time."""
    config = config or EngineConfig()
    scheduler = ManualScheduler()
    emitted: list[tuple[float, EngineEvent]] = []
    engine: TranscriptEngine

    def on_event(event: EngineEvent) -> None:
        emitted.append((scheduler.now(), event))
        if out is not None and (show_interim or not isinstance(event, InterimUpdated)):
            out.write(f"{scheduler.now():8.3f}s  {describe(event)}\n")
        if isinstance(event, PlaybackRequested):
            scheduler.call_later(playback_ms / 1000.0, engine.playback_finished)

    engine = TranscriptEngine(
        triggers,
        config=config,
        scheduler=scheduler,
        clock=scheduler.now,
        on_event=on_event,
    )
    engine.start()
    for step in steps:
        scheduler.advance(max(step.at_ms / 1000.0 - scheduler.now(), 0.0))
        if step.command is not None:
            getattr(engine, step.command)()
        elif step.event is not None:
            engine.handle_event(step.event)

    tail_ms = config.pause_duration_ms + config.settle_delay_ms + playback_ms
    scheduler.advance(tail_ms / 1000.0)
    logger.info("replay finished, platform mode %s", engine.platform_mode.value)
    return emitted


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("path", help="JSON Lines file, or - for stdin")
    parser.add_argument("--trigger", action="append", default=[], help="trigger phrase (repeatable)")
    parser.add_argument("--pause-ms", type=int, default=DEFAULT_PAUSE_DURATION_MS)
    parser.add_argument("--settle-ms", type=int, default=DEFAULT_SETTLE_DELAY_MS)
    parser.add_argument("--window-chars", type=int, default=DEFAULT_RECENCY_WINDOW_CHARS)
    parser.add_argument("--playback-ms", type=int, default=500)
    parser.add_argument("--interim", action="store_true", help="also print interim updates")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = EngineConfig(
            pause_duration_ms=args.pause_ms,
            settle_delay_ms=args.settle_ms,
            recency_window_chars=args.window_chars,
        )
    except ValueError as exc:
        parser.error(str(exc))

    if args.trigger:
        triggers = TriggerSet()
        for phrase in args.trigger:
            triggers.add(phrase)
    else:
        triggers = TriggerSet.with_defaults()

    try:
        if args.path == "-":
            steps = parse_steps(sys.stdin)
        else:
            with open(args.path, encoding="utf-8") as fh:
                steps = parse_steps(fh)
    except (OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    replay(
        steps,
        triggers,
        config=config,
        playback_ms=args.playback_ms,
        show_interim=args.interim,
        out=sys.stdout,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
