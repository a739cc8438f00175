"""HTTP client for the activity store (the persistence boundary of the tracker)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import httpx

from fittrack.core.config import settings
from fittrack.core.constants import USER_ID_HEADER
from fittrack.tracking.geo import GeoPoint

logger = logging.getLogger(__name__)


class ActivityRejected(Exception):
    """The store refused the payload (validation failure)."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


@dataclass(frozen=True)
class CompletedActivity:
    """Immutable record of a finished, saved (or about to be saved) session."""

    type: str
    title: str
    distance_km: float
    duration_sec: int
    date: datetime
    route: tuple[GeoPoint, ...]
    average_pace_sec_per_km: float
    id: Optional[int] = None
    user_id: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "title": self.title,
            "distance_km": self.distance_km,
            "duration_sec": self.duration_sec,
            "date": self.date.isoformat(),
            "route": [p.to_dict() for p in self.route],
            "average_pace_sec_per_km": self.average_pace_sec_per_km,
        }

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "CompletedActivity":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            type=data["type"],
            title=data["title"],
            distance_km=float(data["distance_km"]),
            duration_sec=int(data["duration_sec"]),
            date=datetime.fromisoformat(data["date"].replace("Z", "+00:00")),
            route=tuple(GeoPoint.from_dict(p) for p in data.get("route") or []),
            average_pace_sec_per_km=float(data.get("average_pace_sec_per_km") or 0.0),
        )


def _error_detail(resp: httpx.Response) -> str:
    try:
        detail = resp.json().get("detail")
    except ValueError:
        return resp.text
    if isinstance(detail, list):
        # FastAPI request validation errors
        return "; ".join(str(d.get("msg", d)) if isinstance(d, dict) else str(d) for d in detail)
    return str(detail) if detail is not None else resp.text


class ActivityStoreClient:
    """Saves and reads activities for one user over HTTP.

    Pass `client` to reuse an existing httpx.Client (a FastAPI TestClient
    works too); otherwise one is created for `base_url` and closed by close().
    """

    def __init__(
        self,
        user_id: int,
        base_url: str | None = None,
        client: httpx.Client | None = None,
        timeout: float | None = None,
    ):
        self.user_id = user_id
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=base_url or settings.activity_store_url,
            timeout=timeout or settings.activity_store_timeout,
        )
        self._headers = {USER_ID_HEADER: str(user_id)}

    def save(self, activity: CompletedActivity) -> int:
        """POST the activity; returns the stored record id.

        Raises:
            ActivityRejected: the store answered 400/422.
            httpx.HTTPStatusError: any other non-2xx answer.
        """
        r = self._client.post("/activities/", json=activity.to_payload(), headers=self._headers)
        if r.status_code in (400, 422):
            raise ActivityRejected(r.status_code, _error_detail(r))
        r.raise_for_status()
        activity_id = int(r.json()["id"])
        logger.info("saved activity %s for user %s", activity_id, self.user_id)
        return activity_id

    def get(self, activity_id: int) -> CompletedActivity:
        r = self._client.get(f"/activities/{activity_id}", headers=self._headers)
        r.raise_for_status()
        return CompletedActivity.from_response(r.json())

    def list_activities(self, activity_type: str | None = None) -> list[CompletedActivity]:
        params = {"type": activity_type} if activity_type else None
        r = self._client.get("/activities/", params=params, headers=self._headers)
        r.raise_for_status()
        return [CompletedActivity.from_response(a) for a in r.json()]

    def stats(self) -> dict[str, Any]:
        r = self._client.get("/stats", headers=self._headers)
        r.raise_for_status()
        return r.json()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ActivityStoreClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
