from __future__ import annotations

import copy
import itertools
import os
import sys
from collections import defaultdict

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from shipdesk import create_app
from shipdesk.backend import normalize_filters
from shipdesk.errors import BackendError, RecordNotFound
from shipdesk.services import status_bus


def _equal(left, right) -> bool:
    if left == right:
        return True
    if left is None or right is None or isinstance(left, bool) or isinstance(right, bool):
        return False
    return str(left) == str(right)


def _matches(row: dict, filters) -> bool:
    for column, operator, value in normalize_filters(filters):
        current = row.get(column)
        if operator == "eq" and not _equal(current, value):
            return False
        if operator == "neq" and _equal(current, value):
            return False
        if operator == "in" and not any(_equal(current, item) for item in value):
            return False
        if operator == "is" and current is not value:
            return False
        if operator == "ilike" and str(value).lower() not in str(current or "").lower():
            return False
    return True


class InMemoryBackend:
    """Stand-in for the PostgREST client that keeps tables in dictionaries."""

    def __init__(self, tables=None, *, aliases=None):
        self.tables = defaultdict(list)
        for name, rows in (tables or {}).items():
            self.tables[name] = [dict(row) for row in rows]
        self.aliases = dict(aliases or {})
        self.rpc_handlers = {}
        self.calls = []
        self._failures = []
        self._ids = itertools.count(1000)

    # -- test helpers ---------------------------------------------------

    def fail_next(self, method, error=None, *, table=None, times=1):
        for _ in range(times):
            self._failures.append((method, table, error or BackendError("boom", code="XX000")))

    def rows(self, table):
        return self.tables[self.aliases.get(table, table)]

    def _record(self, method, table, **kwargs):
        self.calls.append((method, table, kwargs))
        for index, (fail_method, fail_table, error) in enumerate(self._failures):
            if fail_method == method and fail_table in (None, table):
                del self._failures[index]
                raise error

    # -- client surface -------------------------------------------------

    def select(
        self,
        table,
        *,
        columns="*",
        filters=None,
        order=None,
        limit=None,
        single=False,
        maybe_single=False,
        timeout=None,
    ):
        self._record("select", table, filters=filters, timeout=timeout)
        rows = [row for row in self.rows(table) if _matches(row, filters)]

        if order:
            orders = [order] if isinstance(order, str) else list(order)
            for clause in reversed(orders):
                column, _, direction = clause.partition(".")
                rows.sort(
                    key=lambda row: (row.get(column) is None, row.get(column) or ""),
                    reverse=direction == "desc",
                )
        if limit is not None and not (single or maybe_single):
            rows = rows[:limit]

        if columns != "*":
            wanted = [name.strip() for name in columns.split(",")]
            rows = [{name: row.get(name) for name in wanted} for row in rows]
        rows = copy.deepcopy(rows)

        if not (single or maybe_single):
            return rows
        if len(rows) > 1:
            raise BackendError(f"Expected a single {table} row, got several", code="PGRST116")
        if not rows:
            if single:
                raise RecordNotFound(f"No {table} row matched", code="PGRST116")
            return None
        return rows[0]

    def insert(self, table, rows, *, timeout=None):
        payload = [rows] if isinstance(rows, dict) else list(rows)
        self._record("insert", table, rows=payload, timeout=timeout)
        inserted = []
        for row in payload:
            stored = dict(row)
            stored.setdefault("id", str(next(self._ids)))
            self.rows(table).append(stored)
            inserted.append(copy.deepcopy(stored))
        return inserted

    def update(self, table, values, *, filters, timeout=None):
        self._record("update", table, values=dict(values), filters=filters, timeout=timeout)
        updated = []
        for row in self.rows(table):
            if _matches(row, filters):
                row.update(copy.deepcopy(dict(values)))
                updated.append(copy.deepcopy(row))
        return updated

    def delete(self, table, *, filters, timeout=None):
        self._record("delete", table, filters=filters, timeout=timeout)
        kept, removed = [], []
        for row in self.rows(table):
            (removed if _matches(row, filters) else kept).append(row)
        self.tables[self.aliases.get(table, table)] = kept
        return removed

    def rpc(self, name, params=None, *, timeout=None):
        self._record("rpc", name, params=dict(params or {}), timeout=timeout)
        handler = self.rpc_handlers.get(name)
        if handler is None:
            raise BackendError(f"Could not find the function public.{name}", code="PGRST202")
        return handler(params or {})

    def count(self, method, table=None):
        return sum(
            1 for call in self.calls if call[0] == method and (table is None or call[1] == table)
        )


def seed_tables():
    return {
        "warehouses": [
            {"warehouse_id": "wh-1", "name": "Main Warehouse", "location": "Bhiwandi", "is_active": True},
            {"warehouse_id": "wh-2", "name": "City Annex", "location": "Thane", "is_active": True},
            {"warehouse_id": "wh-3", "name": "Closed Site", "is_active": False},
        ],
        "inventory": [
            {
                "id": "inv-1",
                "name": "Widget",
                "sku": "WID-001",
                "barcode": "8901234567890",
                "description": "Blue widget",
                "category": "Hardware",
                "quantity": 5,
                "min_stock": 10,
                "unit_price": 2.0,
                "location": "A1",
                "warehouse_id": "wh-1",
                "is_active": True,
                "updated_at": "2025-03-07T10:15:00",
            },
            {
                "id": "inv-2",
                "name": "Gadget",
                "sku": "GAD-002",
                "barcode": "8901234567891",
                "category": "Electronics",
                "quantity": 0,
                "min_stock": 5,
                "unit_price": 3.0,
                "warehouse_id": "wh-1",
                "is_active": True,
            },
            {
                "id": "inv-3",
                "name": "Bolt Pack",
                "sku": "BLT-003",
                "barcode": "8901234567892",
                "category": "Hardware",
                "quantity": 50,
                "min_stock": 10,
                "unit_price": 1.5,
                "warehouse_id": "wh-1",
                "is_active": True,
            },
            {
                "id": "inv-4",
                "name": "Retired Part",
                "sku": "OLD-004",
                "barcode": "8901234567893",
                "quantity": 3,
                "warehouse_id": "wh-1",
                "is_active": False,
            },
            {
                "id": "inv-5",
                "name": "Annex Crate",
                "sku": "CRT-005",
                "barcode": "8901234567894",
                "quantity": 12,
                "warehouse_id": "wh-2",
                "is_active": True,
            },
        ],
        "wms_shipment_orders": [
            {
                "id": "so-1",
                "shipment_id": "SO-0001",
                "status": "draft",
                "order_type": "single",
                "customer_name": "Acme Corp",
                "order_number": "ORD-1",
                "destination": "Mumbai Central Depot",
                "total_cartons": 2,
                "created_at": "2025-03-01T09:00:00",
            },
            {
                "id": "so-2",
                "shipment_id": "SO-0002",
                "status": "draft",
                "order_type": "single",
                "customer_name": "Beta Traders",
                "order_number": "ORD-2",
                "destination": "Pune Hinjewadi Phase 2",
                "total_cartons": 1,
                "created_at": "2025-03-02T09:00:00",
            },
            {
                "id": "so-3",
                "shipment_id": "SO-0003",
                "status": "draft",
                "order_type": "single",
                "customer_name": "Gamma Stores",
                "order_number": "ORD-3",
                "destination": "Chennai Port Trust",
                "total_cartons": 0,
                "created_at": "2025-03-03T09:00:00",
            },
            {
                "id": "so-4",
                "shipment_id": "SO-0004",
                "status": "pending_dispatch",
                "order_type": "single",
                "shipment_type": "truck",
                "loading_strategy": "lifo",
                "customer_name": "Delta Retail",
                "order_number": "ORD-4",
                "destination": "Nashik Industrial Area",
                "total_cartons": 2,
                "truck_details": {
                    "truckNumber": "MH12AB1234",
                    "driverName": "Ravi Kumar",
                    "driverPhone": "9876543210",
                    "licenseId": "MH1220190001",
                },
                "created_at": "2025-03-04T08:00:00",
                "configured_at": "2025-03-04T10:00:00",
            },
            {
                "id": "so-5",
                "shipment_id": "SO-0005",
                "status": "dispatched",
                "order_type": "single",
                "shipment_type": "courier",
                "customer_name": "Echo Labs",
                "total_cartons": 1,
                "courier_details": {"courierName": "DTDC", "awbNumber": "AWB12345678"},
                "dispatched_at": "2025-02-20T16:00:00",
            },
        ],
        "wms_shipment_packaging_sessions": [
            {
                "shipment_order_id": "so-1",
                "packaging_session_id": "ps-1",
                "customer_name": "Acme Corp",
                "order_number": "ORD-1",
                "carton_count": 2,
            },
            {
                "shipment_order_id": "so-2",
                "packaging_session_id": "ps-2",
                "customer_name": "Beta Traders",
                "order_number": "ORD-2",
                "carton_count": 1,
            },
            {
                "shipment_order_id": "so-4",
                "packaging_session_id": "ps-4",
                "customer_name": "Delta Retail",
                "order_number": "ORD-4",
                "carton_count": 2,
            },
        ],
        "wms_shipment_cartons": [
            {"id": "sc-1", "shipment_order_id": "so-1", "carton_barcode": "CTN-1001", "customer_name": "Acme Corp", "loading_sequence": 1},
            {"id": "sc-2", "shipment_order_id": "so-1", "carton_barcode": "ctn-1002", "customer_name": "Acme Corp", "loading_sequence": 2},
            {"id": "sc-3", "shipment_order_id": "so-2", "carton_barcode": "CTN-2001", "customer_name": "Beta Traders", "loading_sequence": 1},
            {"id": "sc-4", "shipment_order_id": "so-4", "carton_barcode": "CTN-4001", "customer_name": "Delta Retail", "loading_sequence": 1},
            {"id": "sc-5", "shipment_order_id": "so-4", "carton_barcode": "CTN-4002", "customer_name": "Delta Retail", "loading_sequence": 2},
        ],
        "wms_delivery_routes": [
            {"id": "rt-1", "shipment_order_id": "so-4", "stop_number": 1},
        ],
        "packaging_sessions": [
            {
                "session_id": "ps-1",
                "order_id": "co-1",
                "shipment_order_created": True,
                "shipment_order_id": "so-1",
                "packaged_by": "Anita",
                "completed_at": "2025-03-01T08:30:00",
            },
            {"session_id": "ps-2", "order_id": "co-2", "shipment_order_created": True, "shipment_order_id": "so-2"},
            {"session_id": "ps-4", "order_id": "co-4", "shipment_order_created": True, "shipment_order_id": "so-4"},
        ],
        "customer_orders": [
            {
                "order_id": "co-1",
                "order_number": "ORD-1",
                "customer_name": "Acme Corp",
                "customer_email": "ops@acme.example",
                "customer_phone": "9876500001",
                "bill_to_address": "12 Market Road, Fort, Mumbai 400001",
                "ship_to_address": "Plot 7, MIDC Industrial Estate, Andheri East, Mumbai 400093",
            },
            {
                "order_id": "co-2",
                "order_number": "ORD-2",
                "customer_name": "Beta Traders",
                "bill_to_address": "4 Station Road, Pune",
                "ship_to_address": "Hinjewadi Phase 2, Pune 411057",
            },
            {
                "order_id": "co-4",
                "order_number": "ORD-4",
                "customer_name": "Delta Retail",
                "customer_phone": "9876500004",
                "bill_to_address": "Gangapur Road, Nashik",
                "ship_to_address": "Satpur MIDC, Nashik 422007",
            },
        ],
        "package_cartons": [
            {"id": "pc-1", "carton_barcode": "CTN-1001", "packaging_session_id": "ps-1", "box_number": 1, "box_type": "medium", "actual_weight": 4.5},
            {"id": "pc-2", "carton_barcode": "ctn-1002", "packaging_session_id": "ps-1", "box_number": 2, "box_type": "extra_large", "estimated_weight": 7},
            {"id": "pc-3", "carton_barcode": "CTN-4001", "packaging_session_id": "ps-4", "box_number": 1, "box_type": "large"},
            {"id": "pc-4", "carton_barcode": "CTN-4002", "packaging_session_id": "ps-4", "box_number": 2, "box_type": "small"},
        ],
        "carton_items": [
            {"id": "ci-1", "carton_id": "pc-1", "quantity": 3, "picklist_item_id": "pl-1", "added_at": "2025-03-01T08:00:00"},
            {"id": "ci-2", "carton_id": "pc-1", "quantity": 2, "picklist_item_id": "pl-2"},
            {"id": "ci-3", "carton_id": "pc-2", "quantity": 4, "picklist_item_id": "pl-1"},
            {"id": "ci-4", "carton_id": "pc-3", "quantity": 6, "picklist_item_id": "pl-3"},
            {"id": "ci-5", "carton_id": "pc-4", "quantity": 1, "picklist_item_id": "pl-99"},
        ],
        "picklist": [
            {"id": "pl-1", "item_name": "Steel Bracket", "sku": "BRK-01"},
            {"id": "pl-2", "item_name": "Hex Bolt M8", "sku": "BLT-08"},
            {"id": "pl-3", "item_name": "Cable Tie", "sku": "CT-100"},
        ],
    }


@pytest.fixture(autouse=True)
def _clear_notices():
    status_bus.clear_events()
    yield
    status_bus.clear_events()


@pytest.fixture
def backend():
    return InMemoryBackend(
        seed_tables(),
        aliases={"wms_shipment_orders_with_customers": "wms_shipment_orders"},
    )


@pytest.fixture
def app(backend):
    app = create_app(
        {
            "TESTING": True,
            "BACKEND_CLIENT": backend,
            "SEARCH_DEBOUNCE_SECONDS": 0.05,
            "DEFAULT_USER_NAME": "Test Operator",
        }
    )
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
