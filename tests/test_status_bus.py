import logging

from shipdesk.controllers.common import truncate_message
from shipdesk.services import status_bus


def test_dedupe_key_counts_repeats():
    first = status_bus.log_event("warning", "Backend slow", source="inventory", dedupe_key="slow")
    second = status_bus.log_event("warning", "Backend slow", source="inventory", dedupe_key="slow")

    assert first is second
    assert second["count"] == 2
    assert len(status_bus.get_recent_events()) == 1


def test_repeated_notice_moves_to_newest():
    status_bus.log_event("error", "Failed to load: boom", source="inventory", dedupe_key="load")
    status_bus.log_event("info", "Screen reset", source="inventory")
    status_bus.log_event("error", "Failed to load: timeout", source="inventory", dedupe_key="load")

    messages = [event["message"] for event in status_bus.get_recent_events()]
    assert messages == ["Screen reset", "Failed to load: timeout"]


def test_evicted_notice_releases_its_dedupe_key():
    status_bus.log_event("warning", "Backend slow", dedupe_key="slow")
    for index in range(200):
        status_bus.log_event("info", f"notice {index}")

    assert "slow" not in status_bus._DEDUPE
    assert status_bus.log_event("warning", "Backend slow", dedupe_key="slow")["count"] == 1


def test_log_level_override(caplog):
    with caplog.at_level("INFO", logger="shipdesk.services.status_bus"):
        status_bus.log_event("error", "Invalid input: Name is required", log_level=logging.INFO)

    record = caplog.records[-1]
    assert record.levelname == "INFO"
    assert status_bus.get_recent_events()[-1]["level"] == "ERROR"


def test_banner_durations_and_blocking():
    banner = status_bus.log_event("success", "Saved")
    dialog = status_bus.log_event("error", "Failed", blocking=True)

    assert banner["level"] == "SUCCESS"
    assert banner["duration"] == 2
    assert dialog["duration"] is None
    assert status_bus.log_event("error", "Failed again")["duration"] == 5


def test_filter_and_clear_by_source():
    status_bus.log_event("info", "a", source="inventory")
    status_bus.log_event("info", "b", source="shipments")
    status_bus.log_event("info", "c", source="inventory")

    assert [event["message"] for event in status_bus.get_recent_events(source="inventory")] == ["a", "c"]
    assert [event["message"] for event in status_bus.get_recent_events(1)] == ["c"]
    assert status_bus.get_recent_events(0) == []

    status_bus.clear_events("inventory")
    assert [event["message"] for event in status_bus.get_recent_events()] == ["b"]


def test_serialize_event():
    event = status_bus.log_event("info", "hello", context={"id": 1})
    data = status_bus.serialize_event(event)
    assert isinstance(data["timestamp"], str)
    assert data["context"] == {"id": 1}


def test_truncate_message():
    assert truncate_message("x" * 250) == "x" * 200 + "..."
    assert truncate_message("short") == "short"
