"""In-memory bus of user-facing notices raised by the screen controllers."""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Any, Deque


logger = logging.getLogger(__name__)

# Seconds a banner stays on screen before auto-dismissing.
NOTICE_DURATIONS = {
    "SUCCESS": 2,
    "INFO": 3,
    "WARNING": 4,
    "ERROR": 5,
}

_EVENTS: Deque[dict[str, Any]] = deque(maxlen=200)
_DEDUPE: dict[str, dict[str, Any]] = {}
_LOCK = threading.Lock()


def log_event(
    level: str,
    message: str,
    *,
    context: dict[str, Any] | None = None,
    source: str | None = None,
    dedupe_key: str | None = None,
    blocking: bool = False,
    log_level: int | None = None,
) -> dict[str, Any]:
    """Record a notice and mirror it to the application log.

    Blocking notices represent dialogs the user must dismiss; everything
    else is a banner that disappears after its duration. A repeat of a
    ``dedupe_key`` still on the bus bumps that notice's count and moves it
    to the newest position. ``log_level`` overrides the level used for the
    log record only.
    """

    timestamp = datetime.utcnow()
    normalized_level = level.upper()

    with _LOCK:
        event = _DEDUPE.get(dedupe_key) if dedupe_key else None
        if event is not None:
            event["count"] += 1
            event["timestamp"] = timestamp
            event["message"] = message
            event["context"] = context or event.get("context")
            _EVENTS.remove(event)
            _EVENTS.append(event)
        else:
            event = {
                "timestamp": timestamp,
                "level": normalized_level,
                "message": message,
                "context": context,
                "source": source,
                "dedupe_key": dedupe_key,
                "count": 1,
                "blocking": blocking,
                "duration": None if blocking else NOTICE_DURATIONS.get(normalized_level, 3),
            }
            if len(_EVENTS) == _EVENTS.maxlen:
                _forget(_EVENTS[0])
            _EVENTS.append(event)
            if dedupe_key:
                _DEDUPE[dedupe_key] = event

    if log_level is None:
        log_level = {"ERROR": logging.ERROR, "WARNING": logging.WARNING}.get(
            normalized_level, logging.INFO
        )
    logger.log(log_level, "[%s] %s", source or "app", message)
    return event


def _forget(event: dict[str, Any]) -> None:
    key = event.get("dedupe_key")
    if key and _DEDUPE.get(key) is event:
        del _DEDUPE[key]


def get_recent_events(limit: int = 200, *, source: str | None = None) -> list[dict[str, Any]]:
    if limit <= 0:
        return []
    with _LOCK:
        events = list(_EVENTS)
    if source is not None:
        events = [event for event in events if event["source"] == source]
    return events[-limit:]


def clear_events(source: str | None = None) -> None:
    with _LOCK:
        if source is None:
            _EVENTS.clear()
            _DEDUPE.clear()
            return
        kept = [event for event in _EVENTS if event["source"] != source]
        _EVENTS.clear()
        _EVENTS.extend(kept)
        for key in [key for key, event in _DEDUPE.items() if event["source"] == source]:
            del _DEDUPE[key]


def serialize_event(event: dict[str, Any]) -> dict[str, Any]:
    data = dict(event)
    data["timestamp"] = event["timestamp"].isoformat()
    return data
