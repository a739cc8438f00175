import pytest

from fittrack.clients.activity_store import ActivityRejected, ActivityStoreClient
from fittrack.tracking.recorder import ActivityRecorder
from fittrack.tracking.sampler import Coordinates, Position, PositionErrorCode, PushPositionSource, SamplingError
from fittrack.tracking.session import ActivityType, SessionState
from fittrack.tracking.validation import UnsavableSession


class RecordingStore:
    """Stands in for the activity store; records what would be saved."""

    def __init__(self):
        self.saved = []

    def save(self, activity):
        self.saved.append(activity)
        return len(self.saved)


def _fix(i, ts):
    return Position(coords=Coordinates(latitude=35.68 + i * 0.0009, longitude=139.76), timestamp_ms=ts)


@pytest.fixture
def source():
    return PushPositionSource()


def _run_three_samples(rec, source, clock, timers):
    rec.start()
    source.push(_fix(0, clock.now))
    clock.advance(10)
    timers.last.fire()
    source.push(_fix(1, clock.now))
    clock.advance(10)
    timers.last.fire()
    source.push(_fix(2, clock.now))


def test_start_subscribes_and_records(source, machine, clock, timers):
    rec = ActivityRecorder(source, machine=machine)
    _run_three_samples(rec, source, clock, timers)

    snap = rec.snapshot()
    assert rec.state is SessionState.tracking
    assert source.subscriber_count == 1
    assert len(snap.route) == 3
    assert snap.duration_sec == 20


def test_samples_dropped_while_paused(source, machine, clock):
    rec = ActivityRecorder(source, machine=machine)
    rec.start()
    source.push(_fix(0, clock.now))
    rec.pause()
    source.push(_fix(1, clock.now))
    assert rec.state is SessionState.paused
    assert len(rec.snapshot().route) == 1

    rec.start()
    source.push(_fix(2, clock.now))
    assert len(rec.snapshot().route) == 2
    # resume keeps the existing subscription
    assert source.subscriber_count == 1


def test_errors_do_not_stop_tracking(source, machine, clock):
    seen = []
    rec = ActivityRecorder(source, machine=machine, on_error=seen.append)
    rec.start()
    source.fail(PositionErrorCode.timeout, "Timeout expired")
    source.push(_fix(0, clock.now))

    assert rec.state is SessionState.tracking
    assert isinstance(rec.last_error, SamplingError)
    assert seen == [rec.last_error]
    assert len(rec.snapshot().route) == 1


def test_stop_releases_subscription_and_timer(source, machine, clock, timers):
    rec = ActivityRecorder(source, machine=machine)
    rec.start()
    snap = rec.stop()
    assert snap.state is SessionState.stopped
    assert source.subscriber_count == 0
    assert timers.last.cancelled


def test_context_manager_closes(source, machine, timers):
    with ActivityRecorder(source, machine=machine) as rec:
        rec.start()
    assert source.subscriber_count == 0
    assert timers.last.cancelled
    assert rec.state is SessionState.stopped


def test_completed_activity(source, machine, clock, timers):
    rec = ActivityRecorder(source, machine=machine)
    _run_three_samples(rec, source, clock, timers)
    rec.stop()

    activity = rec.completed_activity("Morning Run", ActivityType.walking)
    assert activity.type == "walking"
    assert activity.title == "Morning Run"
    assert activity.distance_km == pytest.approx(0.2, abs=1e-3)
    assert activity.duration_sec == 20
    assert activity.average_pace_sec_per_km == pytest.approx(20 / activity.distance_km)
    assert len(activity.route) == 3
    assert activity.date.tzinfo is not None


def test_save_gate_runs_before_store(source, machine, clock):
    store = RecordingStore()
    rec = ActivityRecorder(source, store=store, machine=machine)
    rec.start()
    source.push(_fix(0, clock.now))
    rec.stop()

    with pytest.raises(UnsavableSession) as exc:
        rec.save("Too short")
    assert exc.value.message == "Not enough tracking data to save the activity."
    assert store.saved == []
    # session kept so the user can decide what to do with it
    assert rec.state is SessionState.stopped


def test_save_without_store(source, machine):
    rec = ActivityRecorder(source, machine=machine)
    with pytest.raises(RuntimeError):
        rec.save("Run")


def test_save_stops_running_session_and_resets(source, machine, clock, timers):
    store = RecordingStore()
    rec = ActivityRecorder(source, store=store, machine=machine)
    _run_three_samples(rec, source, clock, timers)

    assert rec.save("Evening Run") == 1
    assert store.saved[0].title == "Evening Run"
    assert len(store.saved[0].route) == 3
    assert rec.state is SessionState.idle
    assert source.subscriber_count == 0


def test_save_through_activity_store(client, source, machine, clock, timers):
    store = ActivityStoreClient(user_id=7, client=client)
    rec = ActivityRecorder(source, store=store, machine=machine)
    _run_three_samples(rec, source, clock, timers)
    rec.stop()

    activity_id = rec.save("Palace Loop")

    saved = store.get(activity_id)
    assert saved.id == activity_id
    assert saved.user_id == 7
    assert saved.title == "Palace Loop"
    assert saved.type == "running"
    assert saved.duration_sec == 20
    assert saved.distance_km == pytest.approx(0.2, abs=1e-3)
    assert [p.timestamp_ms for p in saved.route] == [clock.now - 20_000, clock.now - 10_000, clock.now]

    listed = store.list_activities("running")
    assert [a.id for a in listed] == [activity_id]
    assert store.list_activities("walking") == []
    assert store.stats()["total_activities"] == 1


def test_store_rejection_surfaces(client, source, machine, clock, timers):
    store = ActivityStoreClient(user_id=7, client=client)
    rec = ActivityRecorder(source, store=store, machine=machine)
    _run_three_samples(rec, source, clock, timers)
    rec.stop()

    with pytest.raises(ActivityRejected) as exc:
        rec.save("   ")
    assert exc.value.status_code == 422
    assert "Please provide a title" in exc.value.detail
    # nothing discarded on failure
    assert rec.state is SessionState.stopped
