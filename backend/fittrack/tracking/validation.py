"""Pre-save gate for finished sessions."""

from __future__ import annotations

from fittrack.core.constants import MIN_SAVABLE_POINTS


class UnsavableSession(Exception):
    """The session does not carry enough data to become an activity."""

    def __init__(self, message: str = "Not enough tracking data to save the activity."):
        super().__init__(message)
        self.message = message


def is_session_savable(session) -> bool:
    """True iff the session has distance, duration and at least two route points.

    Works on a Session, a SessionSnapshot, or anything exposing
    `distance_km`, `duration_sec` and `route`.
    """

    return (
        session.distance_km > 0
        and session.duration_sec > 0
        and len(session.route) >= MIN_SAVABLE_POINTS
    )


def ensure_savable(session) -> None:
    if len(session.route) < MIN_SAVABLE_POINTS:
        raise UnsavableSession("Not enough tracking data to save the activity.")
    if not is_session_savable(session):
        raise UnsavableSession("Activity has no recorded distance or duration.")
