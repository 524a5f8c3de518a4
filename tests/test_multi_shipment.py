from shipdesk.errors import BackendTimeout
from shipdesk.models import ShipmentOrder
from shipdesk.services.multi_shipment import (
    CREATE_MULTI_SHIPMENT_RPC,
    MultiShipmentService,
    consolidation_candidates,
    merged_id_list,
)
from shipdesk.services.results import ErrorCode


def _draft(shipment_order_id, destination, status="draft"):
    return ShipmentOrder.from_row({"id": shipment_order_id, "status": status, "destination": destination})


def test_candidates_ignore_destination():
    primary = _draft("a", "Mumbai")
    drafts = [primary, _draft("b", "Chennai"), _draft("c", "Mumbai"), _draft("d", "Pune", "pending_dispatch")]

    assert [order.id for order in consolidation_candidates(primary, drafts)] == ["b", "c"]


def test_merged_id_list_puts_primary_first():
    assert merged_id_list("a", ["b"]) == ["a", "b"]
    assert merged_id_list("a", ["b", "a", "", "b", "c"]) == ["a", "b", "c"]


def test_requires_two_shipments(backend):
    result = MultiShipmentService(backend).create_multi_customer_shipment(["so-1", "so-1"], "Anita")

    assert not result.ok
    assert result.error == ErrorCode.VALIDATION_ERROR
    assert backend.count("rpc") == 0


def test_requires_user_name(backend):
    result = MultiShipmentService(backend).create_multi_customer_shipment(["so-1", "so-2"], "  ")
    assert result.message == "User name is required"


def test_submits_single_rpc(backend):
    backend.rpc_handlers[CREATE_MULTI_SHIPMENT_RPC] = lambda params: {
        "success": True,
        "shipment_id": "MS-0001",
        "shipment_order_id": "so-100",
        "customer_count": 2,
        "total_cartons": 3,
    }

    result = MultiShipmentService(backend).create_multi_customer_shipment(["so-1", "so-2"], " Anita ")

    assert result.ok
    assert result.data == {
        "shipment_id": "MS-0001",
        "shipment_order_id": "so-100",
        "customer_count": 2,
        "total_cartons": 3,
    }
    method, name, kwargs = backend.calls[-1]
    assert (method, name) == ("rpc", CREATE_MULTI_SHIPMENT_RPC)
    assert kwargs["params"] == {"p_shipment_order_ids": ["so-1", "so-2"], "p_user_name": "Anita"}
    assert backend.count("insert") == 0
    assert backend.count("delete") == 0


def test_rpc_rejection_is_reported(backend):
    backend.rpc_handlers[CREATE_MULTI_SHIPMENT_RPC] = lambda params: {
        "success": False,
        "error": "INVALID_STATUS",
        "message": "Shipment SO-0004 is not a draft",
    }

    result = MultiShipmentService(backend).create_multi_customer_shipment(["so-1", "so-4"], "Anita")

    assert result.error == "INVALID_STATUS"
    assert result.message == "Shipment SO-0004 is not a draft"


def test_rpc_failure_is_reported(backend):
    backend.fail_next("rpc", BackendTimeout("slow"))
    result = MultiShipmentService(backend).create_multi_customer_shipment(["so-1", "so-2"], "Anita")
    assert result.error == ErrorCode.TIMEOUT


def test_missing_rpc_is_a_database_error(backend):
    result = MultiShipmentService(backend).create_multi_customer_shipment(["so-1", "so-2"], "Anita")
    assert result.error == ErrorCode.DATABASE_ERROR
