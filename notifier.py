"""Publishing of game events to connected clients.

The game service never talks to a transport. It returns events and the
caller hands them to a notifier. Delivery failures are logged and dropped;
clients resync from the state endpoints.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, List, Optional, TypedDict

import httpx

logger = logging.getLogger(__name__)


class EventName:
    TEAM_JOINED = "team-joined"
    DECISION_SUBMITTED = "decision-submitted"
    CYCLE_ADVANCED = "cycle-advanced"
    SHOCK_ANNOUNCED = "shock-announced"
    GAME_COMPLETED = "game-completed"
    STATE_UPDATED = "state-updated"


class GameEvent(TypedDict):
    channel: str
    event: str
    data: dict


def session_channel(session_id: str) -> str:
    return f"private-session-{session_id}"


def team_channel(team_id: str) -> str:
    return f"private-team-{team_id}"


def session_event(session_id: str, event: str, data: dict) -> GameEvent:
    return {"channel": session_channel(session_id), "event": event, "data": data}


class Notifier:
    """Default notifier: writes events to the log."""

    def publish(self, event: GameEvent) -> None:
        logger.info("Event %s on %s: %s", event["event"], event["channel"], event["data"])

    def publish_all(self, events: Iterable[GameEvent]) -> None:
        for event in events:
            self.publish(event)


class RecordingNotifier(Notifier):
    """Keeps published events in memory; used by tests and local tooling."""

    def __init__(self):
        self.events: List[GameEvent] = []

    def publish(self, event: GameEvent) -> None:
        self.events.append(event)


class WebhookNotifier(Notifier):
    """POSTs each event as JSON to a relay (e.g. a websocket fan-out service)."""

    def __init__(self, url: str, timeout: float = 5.0, token: Optional[str] = None):
        self.url = url
        self.timeout = timeout
        self.token = token

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def publish(self, event: GameEvent) -> None:
        try:
            r = httpx.post(self.url, headers=self._headers(), json=event, timeout=self.timeout)
            r.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Failed to publish %s to %s: %s", event["event"], self.url, e)


def create_notifier() -> Notifier:
    """Webhook notifier when ``NOTIFY_WEBHOOK_URL`` is set, else log-only."""
    url = os.getenv("NOTIFY_WEBHOOK_URL")
    if url:
        return WebhookNotifier(url, token=os.getenv("NOTIFY_WEBHOOK_TOKEN"))
    return Notifier()
