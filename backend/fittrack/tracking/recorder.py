"""Recorder: the host that wires a position source, the session state machine
and the activity store together.

Collaborators are passed in explicitly; nothing is looked up globally.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from fittrack.clients.activity_store import ActivityStoreClient, CompletedActivity
from fittrack.tracking.geo import GeoPoint
from fittrack.tracking.pace import pace_sec_per_km
from fittrack.tracking.sampler import GeoSampler, PositionSource, WatchOptions
from fittrack.tracking.session import (
    ActivityType,
    SessionSnapshot,
    SessionState,
    SessionStateMachine,
)
from fittrack.tracking.validation import ensure_savable

logger = logging.getLogger(__name__)


class ActivityRecorder:
    """Drives one live activity from position fixes to a saved record.

    Usage:
        with ActivityRecorder(source, store) as rec:
            rec.start()
            ...
            rec.stop()
            rec.save("Morning Run")

    Sampling errors never stop tracking; the latest one is kept in
    `last_error` and passed to `on_error` when given.
    """

    def __init__(
        self,
        source: PositionSource,
        store: ActivityStoreClient | None = None,
        machine: SessionStateMachine | None = None,
        activity_type: ActivityType | str = ActivityType.running,
        on_error: Callable[[Exception], None] | None = None,
        options: WatchOptions | None = None,
    ):
        self.machine = machine or SessionStateMachine(activity_type=activity_type)
        self.sampler = GeoSampler(source, options=options)
        self.store = store
        self.on_error = on_error
        self.last_error: Optional[Exception] = None

    @property
    def state(self) -> SessionState:
        return self.machine.state

    def snapshot(self) -> SessionSnapshot:
        return self.machine.snapshot()

    def start(self) -> SessionSnapshot:
        """Start a new session or resume a paused one, and open the position feed."""
        snap = self.machine.start()
        if not self.sampler.active:
            self.sampler.start(self._on_sample, self._on_error)
        return snap

    def pause(self) -> SessionSnapshot:
        return self.machine.pause()

    def stop(self) -> SessionSnapshot:
        snap = self.machine.stop()
        self.sampler.stop()
        return snap

    def reset(self) -> SessionSnapshot:
        self.sampler.stop()
        self.last_error = None
        return self.machine.reset()

    def close(self) -> None:
        """Release the timer and the position subscription."""
        self.sampler.stop()
        if self.machine.state in (SessionState.tracking, SessionState.paused):
            self.machine.stop()

    def __enter__(self) -> "ActivityRecorder":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def completed_activity(
        self, title: str, activity_type: ActivityType | str | None = None
    ) -> CompletedActivity:
        """Copy the finished session into a CompletedActivity payload.

        Raises:
            UnsavableSession: not enough distance, duration or route points.
        """
        snap = self.machine.snapshot()
        ensure_savable(snap)
        kind = ActivityType(activity_type) if activity_type else snap.activity_type
        return CompletedActivity(
            type=kind.value,
            title=title,
            distance_km=snap.distance_km,
            duration_sec=snap.duration_sec,
            date=datetime.now(timezone.utc),
            route=snap.route,
            average_pace_sec_per_km=pace_sec_per_km(snap.distance_km, snap.duration_sec),
        )

    def save(self, title: str, activity_type: ActivityType | str | None = None) -> int:
        """Hand the finished session to the store; returns the stored id.

        The savability gate runs before any request is made. On success the
        in-memory session is discarded.
        """
        if self.store is None:
            raise RuntimeError("recorder has no activity store")
        if self.machine.state in (SessionState.tracking, SessionState.paused):
            self.stop()
        activity = self.completed_activity(title, activity_type)
        activity_id = self.store.save(activity)
        self.machine.reset()
        return activity_id

    def _on_sample(self, point: GeoPoint) -> None:
        # paused or stopped sessions drop live samples
        self.machine.add_sample(point)

    def _on_error(self, err: Exception) -> None:
        self.last_error = err
        if self.on_error is not None:
            self.on_error(err)
