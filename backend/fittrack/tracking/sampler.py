"""Position feed: platform-style sources and the sampler that normalizes them.

A source delivers `Position` fixes or `PositionError`s asynchronously through
callbacks. `GeoSampler` turns fixes into validated `GeoPoint`s and errors into
`SamplingError`s. Nothing is raised back into the source; failures arrive on
the same callback channel as successful samples, tagged as errors.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import IO, Any, Callable, Mapping, Optional, Protocol, Union

import gpxpy
import gpxpy.gpx

from fittrack.core.config import settings
from fittrack.core.time_utils import now_ms
from fittrack.tracking.geo import GeoPoint, InvalidGeoPoint

logger = logging.getLogger(__name__)


class PositionErrorCode(IntEnum):
    unsupported = 0
    permission_denied = 1
    position_unavailable = 2
    timeout = 3


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    speed: Optional[float] = None


@dataclass(frozen=True)
class Position:
    coords: Coordinates
    timestamp_ms: Optional[int] = None


@dataclass(frozen=True)
class PositionError:
    code: PositionErrorCode | int
    message: str


@dataclass(frozen=True)
class WatchOptions:
    enable_high_accuracy: bool = True
    maximum_age_ms: int = 30000
    timeout_ms: int = 27000

    @classmethod
    def from_settings(cls) -> "WatchOptions":
        return cls(
            enable_high_accuracy=settings.geolocation_high_accuracy,
            maximum_age_ms=settings.geolocation_maximum_age_ms,
            timeout_ms=settings.geolocation_timeout_ms,
        )


class SamplingError(Exception):
    """Position source unavailable, denied or timed out. Non-fatal."""

    def __init__(self, code: PositionErrorCode | int, message: str):
        super().__init__(message)
        try:
            self.code = PositionErrorCode(code)
        except ValueError:
            self.code = PositionErrorCode.position_unavailable
        self.message = message

    @classmethod
    def from_position_error(cls, error: PositionError | Mapping[str, Any]) -> "SamplingError":
        if isinstance(error, PositionError):
            return cls(error.code, error.message)
        return cls(error.get("code", PositionErrorCode.position_unavailable), str(error.get("message", "")))


PositionCallback = Callable[[Position], None]
ErrorCallback = Callable[[PositionError], None]


class Subscription(Protocol):
    def cancel(self) -> None: ...


class PositionSource(Protocol):
    def subscribe(
        self, on_position: PositionCallback, on_error: ErrorCallback, options: WatchOptions
    ) -> Subscription: ...


class CallbackSubscription:
    """Cancel token around a release function; cancelling twice is harmless."""

    def __init__(self, release: Callable[[], None]):
        self._release = release
        self._lock = threading.Lock()
        self.cancelled = False

    def cancel(self) -> None:
        with self._lock:
            if self.cancelled:
                return
            self.cancelled = True
        self._release()


# ----------------------------------------------------------------------
# Sources
# ----------------------------------------------------------------------


class PushPositionSource:
    """Source fed by host code, e.g. fixes relayed from a browser client."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: dict[int, tuple[PositionCallback, ErrorCallback]] = {}
        self._next_id = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, on_position, on_error, options=None) -> CallbackSubscription:
        with self._lock:
            sub_id = self._next_id
            self._next_id += 1
            self._subscribers[sub_id] = (on_position, on_error)

        def _release() -> None:
            with self._lock:
                self._subscribers.pop(sub_id, None)

        return CallbackSubscription(_release)

    def push(self, position: Position | Mapping[str, Any]) -> None:
        for on_position, _ in self._targets():
            on_position(position)

    def fail(self, code: PositionErrorCode | int, message: str) -> None:
        # SamplingError maps unknown codes to position_unavailable
        error = PositionError(code, message)
        for _, on_error in self._targets():
            on_error(error)

    def _targets(self):
        with self._lock:
            return list(self._subscribers.values())


class ReplaySubscription(CallbackSubscription):
    def __init__(self, stop_event: threading.Event, thread: threading.Thread):
        super().__init__(stop_event.set)
        self._thread = thread

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the replay has delivered every point (or was cancelled)."""
        self._thread.join(timeout)
        return not self._thread.is_alive()


GpxInput = Union[str, Path, IO[str]]


class GpxReplaySource:
    """Replays the track points of a GPX file as a live position feed.

    Points are delivered on a background thread at the recorded cadence
    divided by `speed`. Points without timestamps are spaced one second apart.
    A gap longer than the watch timeout is reported as a timeout error before
    the next fix, like a device losing signal.
    """

    def __init__(self, gpx_file: GpxInput, speed: float | None = None):
        self.speed = speed or settings.replay_speed
        if self.speed <= 0:
            raise ValueError("speed must be > 0")
        self.positions = _load_gpx_positions(gpx_file)

    def subscribe(self, on_position, on_error, options: WatchOptions | None = None) -> ReplaySubscription:
        options = options or WatchOptions.from_settings()
        stop = threading.Event()
        thread = threading.Thread(
            target=self._run,
            args=(stop, on_position, on_error, options),
            name="fittrack-gpx-replay",
            daemon=True,
        )
        sub = ReplaySubscription(stop, thread)
        thread.start()
        return sub

    def _run(self, stop, on_position, on_error, options) -> None:
        if not self.positions:
            self._deliver(on_error, PositionError(PositionErrorCode.position_unavailable, "GPX file has no track points"))
            return
        prev_ts = None
        for pos in self.positions:
            if prev_ts is not None:
                gap_s = max(0.0, (pos.timestamp_ms - prev_ts) / 1000.0) / self.speed
                if gap_s * 1000 > options.timeout_ms:
                    self._deliver(on_error, PositionError(PositionErrorCode.timeout, "Timeout expired"))
                if stop.wait(gap_s):
                    return
            elif stop.is_set():
                return
            self._deliver(on_position, pos)
            prev_ts = pos.timestamp_ms

    @staticmethod
    def _deliver(callback, value) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception("replay callback failed; replay continues")


def _load_gpx_positions(gpx_file: GpxInput) -> list[Position]:
    """Track points of a GPX document as Positions.

    Raises:
        OSError: the file cannot be read.
        ValueError: the document is not valid GPX.
    """
    try:
        if isinstance(gpx_file, (str, Path)):
            with open(gpx_file, "r", encoding="utf-8") as f:
                gpx = gpxpy.parse(f)
        else:
            gpx = gpxpy.parse(gpx_file)
    except gpxpy.gpx.GPXException as exc:
        raise ValueError(f"invalid GPX: {exc}") from exc

    positions: list[Position] = []
    fallback_ts = None
    for track in gpx.tracks:
        for segment in track.segments:
            for p in segment.points:
                if p.time is not None:
                    ts = int(p.time.timestamp() * 1000)
                elif fallback_ts is not None:
                    ts = fallback_ts + 1000
                else:
                    ts = now_ms()
                fallback_ts = ts
                positions.append(
                    Position(
                        coords=Coordinates(
                            latitude=p.latitude,
                            longitude=p.longitude,
                            altitude=p.elevation,
                        ),
                        timestamp_ms=ts,
                    )
                )
    return positions


# ----------------------------------------------------------------------
# Sampler
# ----------------------------------------------------------------------


SampleCallback = Callable[[GeoPoint], None]
SamplerErrorCallback = Callable[[Exception], None]


class GeoSampler:
    """Subscribes to a position source and emits validated, timestamped GeoPoints.

    `on_error` receives a `SamplingError` for source failures and an
    `InvalidGeoPoint` for fixes outside the valid coordinate range; the
    subscription stays alive in both cases.
    """

    def __init__(
        self,
        source: PositionSource,
        clock: Callable[[], int] = now_ms,
        options: WatchOptions | None = None,
    ):
        self.source = source
        self.options = options or WatchOptions.from_settings()
        self._clock = clock
        self._subscription: Subscription | None = None
        self._running = False
        self._on_sample: SampleCallback | None = None
        self._on_error: SamplerErrorCallback | None = None

    @property
    def active(self) -> bool:
        return self._running

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    def start(self, on_sample: SampleCallback, on_error: SamplerErrorCallback | None = None) -> None:
        if self._running:
            return
        self._on_sample = on_sample
        self._on_error = on_error
        # set before subscribing: threaded sources may deliver before subscribe() returns
        self._running = True
        self._subscription = self.source.subscribe(self._handle_position, self._handle_error, self.options)

    def stop(self) -> None:
        self._running = False
        sub, self._subscription = self._subscription, None
        if sub is not None:
            sub.cancel()

    def normalize(self, position: Position | Mapping[str, Any]) -> GeoPoint:
        """Position (or its {coords, timestamp_ms} mapping) -> GeoPoint.

        Raises:
            InvalidGeoPoint: coordinates missing or out of range.
        """
        if isinstance(position, Position):
            lat, lng, ts = position.coords.latitude, position.coords.longitude, position.timestamp_ms
        else:
            coords = position.get("coords") or {}
            lat, lng = coords.get("latitude"), coords.get("longitude")
            ts = position.get("timestamp_ms")
        if ts is None:
            ts = self._clock()
        return GeoPoint(lat=lat, lng=lng, timestamp_ms=ts)

    def _handle_position(self, position) -> None:
        if not self._running:
            return
        try:
            point = self.normalize(position)
        except InvalidGeoPoint as exc:
            logger.warning("rejected position sample: %s", exc)
            self._emit_error(exc)
            return
        if self._on_sample is not None:
            self._on_sample(point)

    def _handle_error(self, error) -> None:
        if not self._running:
            return
        err = SamplingError.from_position_error(error)
        logger.warning("position source error %s: %s", err.code.name, err.message)
        self._emit_error(err)

    def _emit_error(self, err: Exception) -> None:
        if self._on_error is not None:
            self._on_error(err)
