from datetime import datetime
from decimal import Decimal

import pytest

from shipdesk.models import (
    InventoryItem,
    LoadingStrategy,
    ShipmentOrder,
    ShipmentStatus,
    ShipmentType,
    StockStatus,
    Warehouse,
    stock_status,
)


@pytest.mark.parametrize(
    "quantity, min_stock, expected",
    [
        (0, 10, StockStatus.OUT_OF_STOCK),
        (-2, 10, StockStatus.OUT_OF_STOCK),
        (10, 10, StockStatus.LOW_STOCK),
        (3, 10, StockStatus.LOW_STOCK),
        (11, 10, StockStatus.IN_STOCK),
        (1, 0, StockStatus.IN_STOCK),
    ],
)
def test_stock_status_thresholds(quantity, min_stock, expected):
    assert stock_status(quantity, min_stock) == expected


def test_loading_strategy_accepts_legacy_spellings():
    assert LoadingStrategy.parse("LIFO") == LoadingStrategy.LIFO
    assert LoadingStrategy.parse("fifo") == LoadingStrategy.NON_LIFO
    assert LoadingStrategy.parse("nonLifo") == LoadingStrategy.NON_LIFO
    assert LoadingStrategy.parse("non-lifo") == LoadingStrategy.NON_LIFO
    assert LoadingStrategy.parse("random") is None
    assert LoadingStrategy.handoff_code(None) == "NON_LIFO"
    assert LoadingStrategy.handoff_code("lifo") == "LIFO"


def test_shipment_type_parse():
    assert ShipmentType.parse("Truck") == ShipmentType.TRUCK
    assert ShipmentType.parse("in-person") == ShipmentType.IN_PERSON
    assert ShipmentType.parse("drone") is None
    assert ShipmentType.parse("") is None


def test_inventory_item_defaults_from_sparse_row():
    item = InventoryItem.from_row({"id": 7, "name": "Crate", "quantity": "4.0"})

    assert item.id == "7"
    assert item.quantity == 4
    assert item.min_stock == 10
    assert item.category == "General"
    assert item.location == "Storage"
    assert item.unit_price == Decimal("0")
    assert item.stock_status == StockStatus.LOW_STOCK


def test_inventory_item_values_and_search():
    item = InventoryItem.from_row(
        {
            "id": "inv-1",
            "name": "Widget",
            "sku": "WID-001",
            "barcode": "8901234567890",
            "quantity": 5,
            "min_stock": 2,
            "unit_price": "2.50",
            "updated_at": "2025-03-07T10:15:00Z",
        }
    )

    assert item.total_value == Decimal("12.50")
    assert item.stock_status_label == "In Stock"
    assert item.updated_at.year == 2025
    assert item.matches("wid")
    assert item.matches("4567")
    assert item.matches("")
    assert not item.matches("gadget")

    data = item.as_dict()
    assert data["unit_price"] == "2.50"
    assert data["total_value"] == "12.50"
    assert data["stock_status"] == StockStatus.IN_STOCK


def test_warehouse_from_row_prefers_warehouse_id():
    warehouse = Warehouse.from_row({"warehouse_id": "wh-1", "id": 99, "name": "Main", "location": "Bhiwandi"})
    assert warehouse.id == "wh-1"
    assert warehouse.address == "Bhiwandi"


def test_shipment_order_from_row():
    order = ShipmentOrder.from_row(
        {
            "id": "so-4",
            "shipment_id": "SO-0004",
            "status": "pending_dispatch",
            "shipment_type": "truck",
            "loading_strategy": "fifo",
            "truck_details": {"truckNumber": " MH12AB1234 "},
            "created_at": "2025-03-04T08:00:00",
        }
    )

    assert order.status_label == "Pending Dispatch"
    assert order.loading_strategy == LoadingStrategy.NON_LIFO
    assert order.details == {"truckNumber": " MH12AB1234 "}
    assert order.truck_number == "MH12AB1234"
    assert order.created_at == datetime(2025, 3, 4, 8, 0)
    assert not order.is_draft
    assert not order.is_multi


def test_shipment_order_unknown_status_label():
    order = ShipmentOrder.from_row({"id": "x", "status": "on_hold"})
    assert order.status_label == "On Hold"
    assert ShipmentOrder.from_row({"id": "y"}).status == ShipmentStatus.DRAFT
