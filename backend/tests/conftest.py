import os

# Use in-memory sqlite for tests; must be set before fittrack.core.config is imported
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from fittrack.db import SessionLocal  # noqa: E402
from fittrack.main import app  # noqa: E402
from fittrack.models.activity import Activity  # noqa: E402

T0 = 1_700_000_000_000


class FakeClock:
    """Epoch-ms clock the test moves by hand."""

    def __init__(self, start_ms: int = T0):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> int:
        self.now += int(seconds * 1000)
        return self.now


class FakeTimer:
    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled:
            self.callback()


class FakeTimerFactory:
    """Records every timer a state machine arms."""

    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, interval, callback) -> FakeTimer:
        timer = FakeTimer(interval, callback)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def machine(clock, timers):
    from fittrack.tracking.session import SessionStateMachine

    return SessionStateMachine(clock=clock, timer_factory=timers)


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def clean_activities():
    yield
    db = SessionLocal()
    try:
        db.query(Activity).delete()
        db.commit()
    finally:
        db.close()
