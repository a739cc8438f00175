"""Live activity session: state machine, route buffer, distance and duration.

States run Idle -> Tracking -> (Paused <-> Tracking) -> Stopped. A stopped
session is frozen; the next start() builds a new Session value.

Duration is driven by a repeating timer armed when tracking begins. The timer
keeps firing while paused and each tick only accrues while Tracking, so
pause/resume never tears down or recreates it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from fittrack.core.config import settings
from fittrack.core.time_utils import format_distance, format_duration, format_pace, now_ms
from fittrack.tracking.geo import GeoPoint, as_geo_point, point_distance_km
from fittrack.tracking.pace import pace_sec_per_km
from fittrack.tracking.ticker import RepeatingTimer

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    idle = "idle"
    tracking = "tracking"
    paused = "paused"
    stopped = "stopped"


class ActivityType(str, Enum):
    running = "running"
    walking = "walking"


@dataclass
class Session:
    """Mutable in-progress activity. Owned by exactly one SessionStateMachine."""

    activity_type: ActivityType = ActivityType.running
    state: SessionState = SessionState.idle
    route: list[GeoPoint] = field(default_factory=list)
    distance_km: float = 0.0
    duration_sec: int = 0
    start_timestamp_ms: Optional[int] = None
    last_tick_timestamp_ms: Optional[int] = None

    def append(self, point: GeoPoint) -> None:
        # incremental form of route_distance_km: same terms, same order
        if self.route:
            self.distance_km += point_distance_km(self.route[-1], point)
        self.route.append(point)


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of a session for display and hand-off."""

    state: SessionState
    route: tuple[GeoPoint, ...]
    distance_km: float
    duration_sec: int
    activity_type: ActivityType
    start_timestamp_ms: Optional[int] = None

    @property
    def pace_sec_per_km(self) -> float:
        return pace_sec_per_km(self.distance_km, self.duration_sec)

    def display(self) -> dict[str, str]:
        """Formatted distance/time/pace strings for the live overlay."""
        return {
            "distance": format_distance(self.distance_km),
            "time": format_duration(self.duration_sec),
            "pace": format_pace(self.pace_sec_per_km),
        }


Listener = Callable[[SessionSnapshot], None]
TimerFactory = Callable[[float, Callable[[], None]], Any]


class SessionStateMachine:
    """Owns the current Session and reacts to control commands, samples and ticks.

    `start(point)` doubles as sample ingestion: while tracking, every call that
    carries a point appends it. Invalid transitions (pause while idle, stop
    while idle, a second pause) are silent no-ops that touch no accumulator.

    Clock (epoch ms) and timer factory are injected so hosts and tests control
    time. Public methods are serialized by a re-entrant lock since the timer
    fires on its own thread.
    """

    def __init__(
        self,
        activity_type: ActivityType | str = ActivityType.running,
        clock: Callable[[], int] = now_ms,
        timer_factory: TimerFactory = RepeatingTimer,
        tick_interval: float | None = None,
    ):
        self._lock = threading.RLock()
        self._clock = clock
        self._timer_factory = timer_factory
        self._tick_interval = tick_interval or settings.tick_interval_seconds
        self._timer = None
        self._listeners: list[Listener] = []
        self._activity_type = ActivityType(activity_type)
        self._session = Session(activity_type=self._activity_type)

    # ------------------------------------------------------------------
    # Read-out
    # ------------------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def timer_active(self) -> bool:
        return self._timer is not None

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a snapshot listener; returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def set_activity_type(self, activity_type: ActivityType | str) -> None:
        with self._lock:
            self._activity_type = ActivityType(activity_type)
            self._session.activity_type = self._activity_type
            snap = self._snapshot_locked()
        self._notify(snap)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def start(self, point: GeoPoint | Mapping[str, Any] | None = None) -> SessionSnapshot:
        """Begin, resume, or ingest a sample, depending on the current state."""
        # validate before touching any state
        new_point = as_geo_point(point) if point is not None else None

        with self._lock:
            s = self._session
            if s.state in (SessionState.idle, SessionState.stopped):
                if s.state is SessionState.stopped:
                    s = self._session = Session(activity_type=self._activity_type)
                now = self._clock()
                s.state = SessionState.tracking
                s.start_timestamp_ms = now
                s.last_tick_timestamp_ms = now
                if new_point is not None:
                    s.append(new_point)
                self._arm_timer()
                logger.debug("tracking started at %s", now)
            elif s.state is SessionState.paused:
                s.state = SessionState.tracking
                s.last_tick_timestamp_ms = self._clock()
                logger.debug("tracking resumed")
            elif new_point is not None:
                s.append(new_point)
            else:
                return self._snapshot_locked()
            snap = self._snapshot_locked()
        self._notify(snap)
        return snap

    def add_sample(self, point: GeoPoint | Mapping[str, Any]) -> SessionSnapshot | None:
        """Append a live sample only if currently tracking; never starts or resumes.

        Returns the new snapshot, or None when the sample was dropped.
        """
        new_point = as_geo_point(point)
        with self._lock:
            s = self._session
            if s.state is not SessionState.tracking:
                return None
            s.append(new_point)
            snap = self._snapshot_locked()
        self._notify(snap)
        return snap

    def pause(self) -> SessionSnapshot:
        with self._lock:
            if self._session.state is not SessionState.tracking:
                logger.debug("pause ignored in state %s", self._session.state.value)
                return self._snapshot_locked()
            self._session.state = SessionState.paused
            snap = self._snapshot_locked()
        self._notify(snap)
        return snap

    def stop(self) -> SessionSnapshot:
        with self._lock:
            if self._session.state not in (SessionState.tracking, SessionState.paused):
                logger.debug("stop ignored in state %s", self._session.state.value)
                return self._snapshot_locked()
            self._cancel_timer()
            self._session.state = SessionState.stopped
            snap = self._snapshot_locked()
        logger.debug(
            "tracking stopped: %d points, %.3f km, %d s",
            len(snap.route), snap.distance_km, snap.duration_sec,
        )
        self._notify(snap)
        return snap

    def reset(self) -> SessionSnapshot:
        with self._lock:
            self._cancel_timer()
            self._session = Session(activity_type=self._activity_type)
            snap = self._snapshot_locked()
        self._notify(snap)
        return snap

    def tick(self, now: int | None = None) -> SessionSnapshot | None:
        """Accrue whole elapsed seconds since the last tick, only while tracking.

        The sub-second remainder is dropped each tick; under delayed
        scheduling the total can drift from wall-clock time.
        """
        with self._lock:
            s = self._session
            if s.state is not SessionState.tracking:
                return None
            now = self._clock() if now is None else now
            elapsed = (now - s.last_tick_timestamp_ms) // 1000
            # a clock stepping backwards must not shrink the duration
            s.duration_sec += max(0, int(elapsed))
            s.last_tick_timestamp_ms = now
            snap = self._snapshot_locked()
        self._notify(snap)
        return snap

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_timer(self) -> None:
        self.tick()

    def _arm_timer(self) -> None:
        self._cancel_timer()
        self._timer = self._timer_factory(self._tick_interval, self._on_timer)
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _snapshot_locked(self) -> SessionSnapshot:
        s = self._session
        return SessionSnapshot(
            state=s.state,
            route=tuple(s.route),
            distance_km=s.distance_km,
            duration_sec=s.duration_sec,
            activity_type=s.activity_type,
            start_timestamp_ms=s.start_timestamp_ms,
        )

    def _notify(self, snap: SessionSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("session listener failed")
