from datetime import datetime

import pytest

from shipdesk.errors import BackendTimeout, RecordNotFound
from shipdesk.models import LoadingStrategy, ShipmentStatus, ShipmentType
from shipdesk.services.results import ErrorCode
from shipdesk.services.shipment_service import ShipmentService, build_shipment_qr_payload


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def service(backend, clock):
    return ShipmentService(backend, cache_seconds=120, dispatched_limit=50, clock=clock)


def _order_row(backend, shipment_order_id):
    return next(
        (row for row in backend.rows("wms_shipment_orders") if row["id"] == shipment_order_id),
        None,
    )


def test_draft_list_is_newest_first(service):
    drafts = service.get_draft_shipments()
    assert [order.shipment_id for order in drafts] == ["SO-0003", "SO-0002", "SO-0001"]
    assert [order.id for order in service.get_pending_shipments()] == ["so-4"]
    assert [order.id for order in service.get_dispatched_shipments()] == ["so-5"]


def test_dispatched_list_is_limited(backend, clock):
    backend.rows("wms_shipment_orders").append(
        {"id": "so-6", "shipment_id": "SO-0006", "status": "dispatched", "dispatched_at": "2025-02-21T16:00:00"}
    )
    service = ShipmentService(backend, dispatched_limit=1, clock=clock)

    assert [order.id for order in service.get_dispatched_shipments()] == ["so-6"]
    assert len(service.get_dispatched_shipments(limit=5, force_refresh=True)) == 2


def test_dispatched_cache_is_kept_per_limit(backend, clock):
    backend.rows("wms_shipment_orders").append(
        {"id": "so-6", "shipment_id": "SO-0006", "status": "dispatched", "dispatched_at": "2025-02-21T16:00:00"}
    )
    service = ShipmentService(backend, dispatched_limit=50, clock=clock)

    assert [order.id for order in service.get_dispatched_shipments(limit=1)] == ["so-6"]
    assert [order.id for order in service.get_dispatched_shipments(limit=5)] == ["so-6", "so-5"]
    assert backend.count("select") == 2

    assert len(service.get_dispatched_shipments(limit=1)) == 1
    assert backend.count("select") == 2


def test_list_cache_expires_and_can_be_bypassed(service, backend, clock):
    service.get_draft_shipments()
    service.get_draft_shipments()
    assert backend.count("select") == 1

    service.get_draft_shipments(force_refresh=True)
    assert backend.count("select") == 2

    clock.now += 121
    service.get_draft_shipments()
    assert backend.count("select") == 3


def test_mutation_clears_cache(service, backend):
    service.get_draft_shipments()
    service.delete_draft_shipment("so-2")

    drafts = service.get_draft_shipments()
    assert "so-2" not in [order.id for order in drafts]


def test_delete_draft_removes_children_and_resets_sessions(service, backend):
    result = service.delete_draft_shipment("so-1")

    assert result.ok
    assert result.message == "Shipment deleted successfully"
    assert result.data["deleted_id"] == "SO-0001"
    assert result.data["details"]["packaging_sessions_reset"] == 1
    assert _order_row(backend, "so-1") is None
    assert not [row for row in backend.rows("wms_shipment_cartons") if row["shipment_order_id"] == "so-1"]
    assert not [
        row for row in backend.rows("wms_shipment_packaging_sessions") if row["shipment_order_id"] == "so-1"
    ]
    session = next(row for row in backend.rows("packaging_sessions") if row["session_id"] == "ps-1")
    assert session["shipment_order_created"] is False
    assert session["shipment_order_id"] is None


def test_delete_draft_rejects_configured_shipment(service, backend):
    result = service.delete_draft_shipment("so-4")

    assert not result.ok
    assert result.error == ErrorCode.INVALID_STATUS
    assert "Only draft shipments can be deleted" in result.message
    assert _order_row(backend, "so-4") is not None


def test_delete_missing_shipment(service):
    result = service.delete_draft_shipment("so-404")
    assert result.error == ErrorCode.NOT_FOUND
    assert "already been deleted" in result.message


def test_permanent_delete_also_removes_routes(service, backend):
    result = service.delete_shipment_permanently("so-4")

    assert result.ok
    assert result.data["details"]["previous_status"] == ShipmentStatus.PENDING_DISPATCH
    assert backend.rows("wms_delivery_routes") == []
    assert _order_row(backend, "so-4") is None


def test_session_reset_failure_is_a_warning(service, backend):
    backend.fail_next("update", table="packaging_sessions")

    result = service.delete_draft_shipment("so-1")

    assert result.ok
    assert result.warnings == ("Packaging sessions could not be reset",)
    assert _order_row(backend, "so-1") is None


def test_delete_backend_failure(service, backend):
    backend.fail_next("delete", table="wms_shipment_orders")

    result = service.delete_draft_shipment("so-2")

    assert not result.ok
    assert result.error == ErrorCode.DATABASE_ERROR
    assert result.message == "Database error: boom"


def test_delete_timeout(service, backend):
    backend.fail_next("select", BackendTimeout("slow"), table="wms_shipment_orders")
    result = service.delete_draft_shipment("so-2")
    assert result.error == ErrorCode.TIMEOUT


def test_configure_truck_shipment(service, backend):
    details = {"truckNumber": "MH12AB1234", "driverName": "Ravi Kumar", "driverPhone": "9876543210"}

    result = service.configure_shipment(
        "so-1",
        shipment_type="truck",
        details=details,
        destination="Mumbai Central Depot",
        expected_dispatch_at=datetime(2025, 3, 8, 9, 0),
    )

    assert result.ok
    assert result.message == "Single shipment configured"
    row = _order_row(backend, "so-1")
    assert row["status"] == ShipmentStatus.PENDING_DISPATCH
    assert row["shipment_type"] == ShipmentType.TRUCK
    assert row["loading_strategy"] == LoadingStrategy.NON_LIFO
    assert row["truck_details"] == details
    assert row["courier_details"] is None
    assert row["expected_dispatch_at"] == "2025-03-08T09:00:00"


def test_configure_courier_keeps_strategy_empty(service, backend):
    result = service.configure_shipment(
        "so-2",
        shipment_type="courier",
        details={"courierName": "DTDC", "awbNumber": "AWB12345678"},
        destination="Pune Hinjewadi Phase 2",
    )
    assert result.ok
    row = _order_row(backend, "so-2")
    assert row["loading_strategy"] is None
    assert row["courier_details"]["courierName"] == "DTDC"


def test_configure_rejects_non_draft(service):
    result = service.configure_shipment(
        "so-4", shipment_type="truck", details={"truckNumber": "x"}, destination="Somewhere far"
    )
    assert result.error == ErrorCode.INVALID_STATUS


def test_configure_requires_details(service):
    result = service.configure_shipment("so-1", shipment_type="courier", details={}, destination="x")
    assert result.error == ErrorCode.VALIDATION_ERROR
    assert result.message == "Courier Dispatch details required"


def test_generate_qr_stores_payload(service, backend):
    result = service.generate_shipment_qr("so-1")

    assert result.ok
    qr_data = result.data["qr_data"]
    assert qr_data["shipmentid"] == "SO-0001"
    assert qr_data["cartons"] == ["CTN-1001", "ctn-1002"]
    assert qr_data["totalcartons"] == 2
    assert qr_data["customername"] == "Acme Corp"
    row = _order_row(backend, "so-1")
    assert row["slip_generated"] is True
    assert row["qr_data"] == qr_data


def test_generate_qr_without_sessions(service):
    result = service.generate_shipment_qr("so-3")
    assert result.error == ErrorCode.NOT_FOUND
    assert result.message == "No packaging sessions found for this shipment"


def test_qr_payload_for_multi_customer_order():
    payload = build_shipment_qr_payload(
        {"shipment_id": "MS-1", "order_type": "multi", "shipment_type": "truck", "truck_details": {"truckNumber": "X"}},
        [
            {"customer_name": "Acme Corp", "order_number": "ORD-1"},
            {"customer_name": "Beta Traders", "order_number": "ORD-2"},
        ],
        [{"carton_barcode": "A"}, {"carton_barcode": "B"}],
    )
    assert payload["customers"] == [
        {"customername": "Acme Corp", "ordernumber": "ORD-1"},
        {"customername": "Beta Traders", "ordernumber": "ORD-2"},
    ]
    assert payload["truckdetails"] == {"truckNumber": "X"}
    assert "customername" not in payload


def test_carton_items_resolve_picklist(service):
    contents = service.get_carton_items("CTN-1001")

    assert [(item.product_name, item.sku, item.quantity) for item in contents.items] == [
        ("Steel Bracket", "BRK-01", 3),
        ("Hex Bolt M8", "BLT-08", 2),
    ]
    assert contents.total_items == 5
    assert contents.unique_items == 2


def test_carton_items_with_missing_picklist_row(service):
    item = service.get_carton_items("CTN-4002").items[0]
    assert (item.product_name, item.sku, item.quantity) == ("Unknown Product", "N/A", 1)


def test_unknown_carton_has_no_items(service):
    assert service.get_carton_items("CTN-9999").items == []


def test_shipment_products_are_tagged_with_customer(service):
    products = service.get_shipment_products("so-1")
    assert len(products) == 3
    assert {item.customer_name for item in products} == {"Acme Corp"}


def test_session_customers(service):
    customers = service.get_session_customers("so-1")
    assert customers == [
        {
            "customer_name": "Acme Corp",
            "order_number": "ORD-1",
            "carton_count": 2,
            "customer_email": "ops@acme.example",
            "customer_phone": "9876500001",
            "bill_to_address": "12 Market Road, Fort, Mumbai 400001",
            "ship_to_address": "Plot 7, MIDC Industrial Estate, Andheri East, Mumbai 400093",
        }
    ]


def test_dispatch_slip_data(service):
    data = service.get_dispatch_slip_data("so-4")

    assert data["shipment"]["id"] == "SO-0004"
    assert data["shipment"]["truck_number"] == "MH12AB1234"
    assert data["shipment"]["total_cartons"] == 2
    assert data["driver"]["driver_name"] == "Ravi Kumar"
    assert data["driver"]["license_id"] == "MH1220190001"
    stop = data["cartons_by_stop"][1]
    assert [carton["carton_barcode"] for carton in stop] == ["CTN-4001", "CTN-4002"]
    assert stop[0]["quantity"] == 6
    assert stop[0]["products"]["product_name"] == "Cable Tie"


def test_dispatch_slip_data_for_missing_shipment(service):
    with pytest.raises(RecordNotFound):
        service.get_dispatch_slip_data("so-404")


def test_packing_slip_data(service):
    slips = service.get_packing_slip_data("ps-1")

    assert [slip.box_number for slip in slips] == [1, 2]
    first, second = slips
    assert first.total_boxes == 2
    assert first.order_number == "ORD-1"
    assert first.packed_by == "Anita"
    assert first.packed_date == datetime(2025, 3, 1, 8, 30)
    assert first.box_weight == 4.5
    assert first.slip_id == "ps-1-BOX1"
    assert second.box_weight == 7.0
    assert second.box_type == "extra_large"
    assert [item.quantity for item in second.items] == [4]


def test_packing_slip_data_defaults_packer(service):
    assert service.get_packing_slip_data("ps-2", default_packer="Night Shift") == []
    with pytest.raises(RecordNotFound):
        service.get_packing_slip_data("ps-404")
