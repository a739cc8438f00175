#!/usr/bin/env python3
"""
Replay a recorded GPX track through the live tracker, as if it were a phone's
position feed, and optionally save the result to the activity store.

The live overlay (distance / time / pace) is printed once per second of
session time.

Usage examples:
  - Watch a replay 20x faster than real time:
      python scripts/replay_gpx.py morning.gpx --speed 20
  - Replay and save it for user 1 against a local store:
      python scripts/replay_gpx.py morning.gpx --speed 50 --save "Morning Run" \
          --base-url http://localhost:8000 --user-id 1
"""

from __future__ import annotations

import argparse
import logging
import sys
import time

from fittrack.clients.activity_store import ActivityRejected, ActivityStoreClient
from fittrack.core.config import settings
from fittrack.core.time_utils import now_ms
from fittrack.tracking.recorder import ActivityRecorder
from fittrack.tracking.sampler import GpxReplaySource
from fittrack.tracking.session import SessionStateMachine
from fittrack.tracking.validation import UnsavableSession


class ScaledClock:
    """Epoch-ms clock that runs `speed` times faster than wall time."""

    def __init__(self, speed: float):
        self.speed = speed
        self.origin = now_ms()

    def __call__(self) -> int:
        return self.origin + int((now_ms() - self.origin) * self.speed)


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    p.add_argument("gpx", help="GPX file to replay")
    p.add_argument("--speed", type=float, default=settings.replay_speed, help="Playback speed factor")
    p.add_argument("--type", choices=["running", "walking"], default="running")
    p.add_argument("--save", metavar="TITLE", help="Save the finished activity with this title")
    p.add_argument("--base-url", default=settings.activity_store_url)
    p.add_argument("--user-id", type=int, default=1)
    p.add_argument("-v", "--verbose", action="store_true")
    args = p.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        source = GpxReplaySource(args.gpx, speed=args.speed)
    except (OSError, ValueError) as exc:
        print(f"Cannot read GPX file: {exc}", file=sys.stderr)
        return 2

    # session time runs at replay speed so duration matches the recording
    machine = SessionStateMachine(
        activity_type=args.type,
        clock=ScaledClock(args.speed),
        tick_interval=1.0 / args.speed,
    )
    last_printed = {"sec": -1}

    def _overlay(snap) -> None:
        if snap.duration_sec != last_printed["sec"]:
            last_printed["sec"] = snap.duration_sec
            d = snap.display()
            print(f"\r{d['distance']:>9}  {d['time']:>8}  {d['pace']:>10}", end="", flush=True)

    machine.subscribe(_overlay)

    def _on_error(err: Exception) -> None:
        print(f"\nposition error: {err}", file=sys.stderr)

    store = ActivityStoreClient(user_id=args.user_id, base_url=args.base_url) if args.save else None
    try:
        with ActivityRecorder(source, store=store, machine=machine, on_error=_on_error) as rec:
            rec.start()
            # let the final gap after the last point elapse on the session clock too
            sub = rec.sampler.subscription
            while not sub.wait(timeout=0.2):
                pass
            time.sleep(1.0 / args.speed)
            snap = rec.stop()
            print()
            print(f"points={len(snap.route)} distance={snap.distance_km:.3f}km duration={snap.duration_sec}s")

            if args.save:
                try:
                    activity_id = rec.save(args.save)
                except UnsavableSession as exc:
                    print(f"Cannot save activity: {exc.message}", file=sys.stderr)
                    return 1
                except ActivityRejected as exc:
                    print(f"Save failed: {exc.detail}", file=sys.stderr)
                    return 1
                print(f"Saved activity id={activity_id}")
    finally:
        if store is not None:
            store.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
