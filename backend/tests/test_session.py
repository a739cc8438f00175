import threading

import pytest

from fittrack.tracking.geo import GeoPoint, InvalidGeoPoint, route_distance_km
from fittrack.tracking.session import ActivityType, SessionState, SessionStateMachine

# ~100 m of latitude
STEP = 0.0009


def _point(i: int, clock_ms: int) -> GeoPoint:
    return GeoPoint(lat=35.68 + i * STEP, lng=139.76, timestamp_ms=clock_ms)


def test_starts_idle(machine):
    snap = machine.snapshot()
    assert snap.state is SessionState.idle
    assert snap.route == ()
    assert snap.distance_km == 0.0
    assert snap.duration_sec == 0
    assert not machine.timer_active


def test_start_begins_tracking_and_arms_timer(machine, clock, timers):
    snap = machine.start()
    assert snap.state is SessionState.tracking
    assert snap.start_timestamp_ms == clock.now
    assert machine.timer_active
    assert timers.last.started
    assert timers.last.interval == 1.0


def test_start_with_point_from_idle_records_it(machine, clock):
    snap = machine.start(_point(0, clock.now))
    assert len(snap.route) == 1
    assert snap.distance_km == 0.0


def test_end_to_end_scenario(machine, clock, timers):
    machine.start()
    machine.start(_point(0, clock.now))
    clock.advance(10)
    timers.last.fire()
    machine.start(_point(1, clock.now))
    clock.advance(10)
    timers.last.fire()
    machine.start(_point(2, clock.now))

    machine.pause()
    clock.advance(5)
    timers.last.fire()
    assert machine.snapshot().duration_sec == 20

    machine.start()
    snap = machine.stop()

    assert snap.state is SessionState.stopped
    assert len(snap.route) == 3
    assert snap.distance_km == pytest.approx(0.2, abs=1e-3)
    assert snap.duration_sec == 20


def test_incremental_distance_matches_batch(machine, clock):
    machine.start()
    points = []
    lats = [35.0, 35.0007, 35.0011, 35.0031, 35.0032, 35.004]
    for i, lat in enumerate(lats):
        p = GeoPoint(lat=lat, lng=139.0 + i * 0.0003, timestamp_ms=clock.now + i * 1000)
        points.append(p)
        machine.start(p)
    snap = machine.snapshot()
    assert snap.distance_km == route_distance_km(points)


def test_distance_is_monotonic(machine, clock):
    machine.start()
    seen = []
    for i in [0, 1, 1, 0, 2]:
        seen.append(machine.start(_point(i, clock.now)).distance_km)
    assert seen == sorted(seen)


def test_pause_is_idempotent(machine, clock, timers):
    machine.start(_point(0, clock.now))
    first = machine.pause()
    second = machine.pause()
    assert first == second
    assert second.state is SessionState.paused
    # timer stays armed while paused
    assert machine.timer_active
    assert not timers.last.cancelled


def test_paused_duration_is_frozen(machine, clock, timers):
    machine.start()
    clock.advance(3)
    timers.last.fire()
    machine.pause()
    for _ in range(10):
        clock.advance(1)
        timers.last.fire()
    assert machine.snapshot().duration_sec == 3


def test_resume_does_not_count_pause_gap(machine, clock, timers):
    machine.start()
    clock.advance(2)
    timers.last.fire()
    machine.pause()
    clock.advance(60)
    machine.start()
    clock.advance(1)
    timers.last.fire()
    assert machine.snapshot().duration_sec == 3
    # resume keeps the same timer
    assert len(timers.timers) == 1


def test_resume_ignores_point(machine, clock):
    machine.start(_point(0, clock.now))
    machine.pause()
    snap = machine.start(_point(1, clock.now))
    assert snap.state is SessionState.tracking
    assert len(snap.route) == 1


def test_invalid_transitions_are_no_ops(machine):
    assert machine.pause().state is SessionState.idle
    assert machine.stop().state is SessionState.idle
    assert not machine.timer_active


def test_start_without_point_while_tracking_is_no_op(machine, clock):
    machine.start(_point(0, clock.now))
    events = []
    machine.subscribe(events.append)
    snap = machine.start()
    assert len(snap.route) == 1
    assert events == []


def test_invalid_point_changes_nothing(machine, clock):
    machine.start(_point(0, clock.now))
    with pytest.raises(InvalidGeoPoint):
        machine.start({"lat": 95.0, "lng": 0.0, "timestamp_ms": clock.now})
    assert len(machine.snapshot().route) == 1


def test_invalid_point_does_not_start_idle_session(machine):
    with pytest.raises(InvalidGeoPoint):
        machine.start({"lat": 0.0, "lng": 200.0, "timestamp_ms": 0})
    assert machine.state is SessionState.idle
    assert not machine.timer_active


def test_stop_cancels_timer_and_freezes(machine, clock, timers):
    machine.start(_point(0, clock.now))
    machine.start(_point(1, clock.now))
    snap = machine.stop()
    assert timers.last.cancelled
    assert not machine.timer_active

    clock.advance(5)
    assert machine.tick() is None
    assert machine.pause().state is SessionState.stopped
    assert machine.snapshot() == snap


def test_stop_from_paused(machine, clock):
    machine.start(_point(0, clock.now))
    machine.pause()
    assert machine.stop().state is SessionState.stopped


def test_restart_after_stop_creates_new_session(machine, clock, timers):
    machine.start(_point(0, clock.now))
    clock.advance(4)
    machine.tick()
    machine.stop()
    old = machine.session

    clock.advance(10)
    snap = machine.start(_point(5, clock.now))
    assert machine.session is not old
    assert old.state is SessionState.stopped
    assert old.duration_sec == 4
    assert snap.duration_sec == 0
    assert len(snap.route) == 1
    assert snap.start_timestamp_ms == clock.now
    assert len(timers.timers) == 2


def test_reset_cancels_timer_and_clears(machine, clock, timers):
    machine.start(_point(0, clock.now))
    machine.start(_point(1, clock.now))
    snap = machine.reset()
    assert timers.last.cancelled
    assert not machine.timer_active
    assert snap.state is SessionState.idle
    assert snap.route == ()
    assert snap.distance_km == 0.0


def test_tick_accrues_whole_seconds_only(machine, clock):
    machine.start()
    clock.advance(1.9)
    machine.tick()
    assert machine.snapshot().duration_sec == 1
    clock.advance(0.5)
    machine.tick()
    assert machine.snapshot().duration_sec == 1


def test_clock_going_backwards_never_shrinks_duration(machine, clock):
    machine.start()
    clock.advance(5)
    machine.tick()
    clock.advance(-30)
    machine.tick()
    assert machine.snapshot().duration_sec == 5


def test_add_sample_only_while_tracking(machine, clock):
    assert machine.add_sample(_point(0, clock.now)) is None
    assert machine.state is SessionState.idle

    machine.start()
    assert len(machine.add_sample(_point(0, clock.now)).route) == 1
    machine.pause()
    assert machine.add_sample(_point(1, clock.now)) is None
    assert len(machine.snapshot().route) == 1


def test_out_of_order_and_duplicate_timestamps_accepted(machine, clock):
    machine.start()
    machine.start(GeoPoint(35.0, 139.0, 5000))
    machine.start(GeoPoint(35.001, 139.0, 5000))
    machine.start(GeoPoint(35.002, 139.0, 1000))
    assert [p.timestamp_ms for p in machine.snapshot().route] == [5000, 5000, 1000]


def test_listeners_are_notified(machine, clock):
    events = []
    unsubscribe = machine.subscribe(events.append)
    machine.start(_point(0, clock.now))
    machine.pause()
    machine.stop()
    assert [e.state for e in events] == [SessionState.tracking, SessionState.paused, SessionState.stopped]

    unsubscribe()
    machine.reset()
    assert len(events) == 3


def test_failing_listener_does_not_break_machine(machine, clock):
    def boom(snap):
        raise RuntimeError("overlay crashed")

    machine.subscribe(boom)
    snap = machine.start(_point(0, clock.now))
    assert snap.state is SessionState.tracking


def test_snapshot_display(machine, clock):
    machine.start(_point(0, clock.now))
    machine.start(_point(10, clock.now))
    clock.advance(330)
    machine.tick()
    d = machine.snapshot().display()
    assert d["distance"] == "1.0 km"
    assert d["time"] == "5:30"
    assert d["pace"].endswith("/km")


def test_activity_type(clock, timers):
    m = SessionStateMachine(activity_type="walking", clock=clock, timer_factory=timers)
    assert m.snapshot().activity_type is ActivityType.walking
    m.set_activity_type(ActivityType.running)
    assert m.snapshot().activity_type is ActivityType.running
    m.start()
    m.stop()
    m.start()
    assert m.snapshot().activity_type is ActivityType.running


def test_invalid_timestamp_raises_invalid_point(machine, clock):
    machine.start(_point(0, clock.now))
    with pytest.raises(InvalidGeoPoint):
        machine.start({"lat": 35.0, "lng": 139.0, "timestamp_ms": None})
    assert len(machine.snapshot().route) == 1


def test_add_sample_notifies_outside_lock(machine, clock):
    blocked = []

    def listener(snap):
        # another thread must be able to read the machine while listeners run
        reader = threading.Thread(target=machine.snapshot)
        reader.start()
        reader.join(1.0)
        blocked.append(reader.is_alive())

    machine.start()
    machine.subscribe(listener)
    snap = machine.add_sample(_point(0, clock.now))
    assert len(snap.route) == 1
    assert blocked == [False]
