import json

import pytest
import requests

from shipdesk.backend import BackendClient, encode_filters
from shipdesk.errors import BackendError, BackendTimeout, BackendUnavailable, RecordNotFound


class _FakeResponse:
    def __init__(self, status_code=200, payload=None, reason="OK"):
        self.status_code = status_code
        self.reason = reason
        self._payload = payload
        self.content = b"" if payload is None else json.dumps(payload).encode()

    def json(self):
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


@pytest.fixture
def client():
    return BackendClient("https://example.supabase.co/", "anon-key", timeout=15)


def _respond(monkeypatch, client, *responses):
    calls = []
    queue = list(responses)

    def _request(method, url, **kwargs):
        calls.append({"method": method, "url": url, **kwargs})
        result = queue.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(client.session, "request", _request)
    return calls


def test_encode_filters():
    params = encode_filters(
        [
            ("status", "eq", "draft"),
            ("id", "in", ["so-1", "so,2"]),
            ("deleted_at", "is", None),
            ("is_active", "eq", True),
            ("name", "ilike", "bolt"),
        ]
    )
    assert params == [
        ("status", "eq.draft"),
        ("id", 'in.(so-1,"so,2")'),
        ("deleted_at", "is.null"),
        ("is_active", "eq.true"),
        ("name", "ilike.*bolt*"),
    ]
    assert encode_filters({"warehouse_id": "wh-1"}) == [("warehouse_id", "eq.wh-1")]
    assert encode_filters(None) == []


def test_select_builds_query_and_uses_default_timeout(monkeypatch, client):
    calls = _respond(monkeypatch, client, _FakeResponse(payload=[{"id": 1}]))

    rows = client.select(
        "inventory",
        filters={"warehouse_id": "wh-1"},
        order=["name", "created_at.desc"],
        limit=1000,
    )

    assert rows == [{"id": 1}]
    call = calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://example.supabase.co/rest/v1/inventory"
    assert ("order", "name,created_at.desc") in call["params"]
    assert ("limit", "1000") in call["params"]
    assert call["timeout"] == 15
    assert call["headers"]["apikey"] == "anon-key"
    assert call["headers"]["Authorization"] == "Bearer anon-key"


def test_per_request_timeout_override(monkeypatch, client):
    calls = _respond(monkeypatch, client, _FakeResponse(payload=[]))
    client.select("inventory", timeout=30)
    assert calls[0]["timeout"] == 30


def test_timeout_is_translated(monkeypatch, client):
    _respond(monkeypatch, client, requests.Timeout("slow"))
    with pytest.raises(BackendTimeout) as excinfo:
        client.select("inventory")
    assert excinfo.value.code == "TIMEOUT"
    assert "15 seconds" in str(excinfo.value)


def test_connection_error_is_translated(monkeypatch, client):
    _respond(monkeypatch, client, requests.ConnectionError("refused"))
    with pytest.raises(BackendUnavailable):
        client.rpc("ping")


def test_error_response_carries_backend_message(monkeypatch, client):
    _respond(
        monkeypatch,
        client,
        _FakeResponse(
            400,
            {"message": "duplicate key value", "code": "23505", "details": "Key (sku) exists"},
            reason="Bad Request",
        ),
    )
    with pytest.raises(BackendError) as excinfo:
        client.insert("inventory", {"sku": "WID-001"})
    error = excinfo.value
    assert str(error) == "duplicate key value"
    assert error.code == "23505"
    assert error.details == "Key (sku) exists"
    assert error.status_code == 400


def test_insert_and_update_send_representation(monkeypatch, client):
    calls = _respond(
        monkeypatch,
        client,
        _FakeResponse(201, [{"id": "new"}]),
        _FakeResponse(200, [{"id": "new", "quantity": 3}]),
    )

    assert client.insert("inventory", {"name": "Crate"}) == [{"id": "new"}]
    client.update("inventory", {"quantity": 3}, filters={"id": "new"})

    assert calls[0]["json"] == [{"name": "Crate"}]
    assert calls[0]["headers"]["Prefer"] == "return=representation"
    assert calls[1]["method"] == "PATCH"
    assert calls[1]["params"] == [("id", "eq.new")]


def test_update_and_delete_require_filters(client):
    with pytest.raises(ValueError):
        client.update("inventory", {"quantity": 1}, filters=None)
    with pytest.raises(ValueError):
        client.delete("inventory", filters={})


def test_single_and_maybe_single(monkeypatch, client):
    _respond(
        monkeypatch,
        client,
        _FakeResponse(payload=[]),
        _FakeResponse(payload=[]),
        _FakeResponse(payload=[{"id": 1}, {"id": 2}]),
        _FakeResponse(payload=[{"id": 3}]),
    )

    with pytest.raises(RecordNotFound):
        client.select("wms_shipment_orders", single=True)
    assert client.select("wms_shipment_orders", maybe_single=True) is None
    with pytest.raises(BackendError):
        client.select("wms_shipment_orders", maybe_single=True)
    assert client.select("wms_shipment_orders", single=True) == {"id": 3}


def test_rpc_empty_response(monkeypatch, client):
    calls = _respond(monkeypatch, client, _FakeResponse(204))
    assert client.rpc("reset_session", {"p_session_id": "ps-1"}) is None
    assert calls[0]["url"].endswith("/rest/v1/rpc/reset_session")
    assert calls[0]["json"] == {"p_session_id": "ps-1"}


def test_init_app_reads_config(app):
    from shipdesk.extensions import backend

    assert backend.timeout == app.config["BACKEND_TIMEOUT"]
    assert app.extensions["shipdesk_backend"] is backend
