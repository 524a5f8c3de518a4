"""Warehouse selection, inventory CRUD and inventory report aggregation."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping

from shipdesk.backend import BackendClient
from shipdesk.errors import BackendError, RecordNotFound, ShipdeskError
from shipdesk.models import (
    DEFAULT_CATEGORY,
    InventoryItem,
    MovementType,
    StockStatus,
    Warehouse,
)


logger = logging.getLogger(__name__)

INVENTORY_TABLE = "inventory"
MOVEMENTS_TABLE = "inventory_movements"
WAREHOUSES_TABLE = "warehouses"

EDITABLE_FIELDS = {
    "name",
    "sku",
    "barcode",
    "description",
    "category",
    "quantity",
    "min_stock",
    "unit_price",
    "location",
}


def barcode_check_digits(barcode: str) -> str:
    """Three-character suffix printed under a barcode for manual keying.

    Uses the last three digits of the numeric part, falling back to the sum
    of the character codes modulo 1000.
    """

    digits = re.sub(r"\D", "", barcode)
    if len(digits) >= 3:
        return digits[-3:]
    return str(sum(ord(ch) for ch in barcode) % 1000).zfill(3)


def _now() -> str:
    return datetime.utcnow().isoformat()


@dataclass
class InventoryReport:
    warehouse_name: str
    generated_by: str
    generated_at: datetime
    items: list[InventoryItem] = field(default_factory=list)
    low_stock_items: int = 0
    out_of_stock_items: int = 0
    total_value: Decimal = field(default_factory=lambda: Decimal("0"))
    category_breakdown: dict[str, int] = field(default_factory=dict)

    @property
    def total_items(self) -> int:
        return len(self.items)

    def summary(self) -> dict[str, Any]:
        return {
            "warehouse": self.warehouse_name,
            "generated_by": self.generated_by,
            "generated_at": self.generated_at.isoformat(),
            "total_items": self.total_items,
            "low_stock_items": self.low_stock_items,
            "out_of_stock_items": self.out_of_stock_items,
            "total_inventory_value": format(self.total_value.quantize(Decimal("0.01")), "f"),
            "category_breakdown": dict(self.category_breakdown),
        }


def build_inventory_report(
    items: Iterable[InventoryItem],
    *,
    warehouse_name: str,
    generated_by: str,
    generated_at: datetime | None = None,
) -> InventoryReport:
    report = InventoryReport(
        warehouse_name=warehouse_name,
        generated_by=generated_by,
        generated_at=generated_at or datetime.now(),
    )
    for item in items:
        report.items.append(item)
        status = item.stock_status
        if status == StockStatus.OUT_OF_STOCK:
            report.out_of_stock_items += 1
        elif status == StockStatus.LOW_STOCK:
            report.low_stock_items += 1
        report.total_value += item.total_value
        category = item.category or DEFAULT_CATEGORY
        report.category_breakdown[category] = report.category_breakdown.get(category, 0) + 1
    return report


class WarehouseService:
    """Inventory operations scoped to the currently selected warehouse.

    The current warehouse is process-wide session state: every controller
    sharing this service sees the same selection.
    """

    def __init__(
        self,
        backend: BackendClient,
        *,
        fetch_limit: int = 1000,
        export_timeout: float | None = None,
    ) -> None:
        self.backend = backend
        self.fetch_limit = fetch_limit
        self.export_timeout = export_timeout
        self._lock = threading.Lock()
        self.current_warehouse_id: str | None = None
        self.current_warehouse_name: str | None = None

    # -- warehouses -----------------------------------------------------

    def list_active_warehouses(self) -> list[Warehouse]:
        rows = self.backend.select(
            WAREHOUSES_TABLE, filters={"is_active": True}, order="name"
        )
        return [Warehouse.from_row(row) for row in rows]

    def set_current_warehouse(self, warehouse_id: str, name: str | None = None) -> Warehouse:
        if name is None:
            row = self.backend.select(
                WAREHOUSES_TABLE,
                filters={"warehouse_id": warehouse_id},
                maybe_single=True,
            )
            if row is None:
                raise RecordNotFound(f"Warehouse {warehouse_id} was not found", code="NOT_FOUND")
            warehouse = Warehouse.from_row(row)
        else:
            warehouse = Warehouse(id=warehouse_id, name=name)

        with self._lock:
            self.current_warehouse_id = warehouse.id
            self.current_warehouse_name = warehouse.name
        logger.info("Current warehouse set to %s (%s)", warehouse.name, warehouse.id)
        return warehouse

    def ensure_warehouse(self) -> str:
        """Return the current warehouse id, auto-selecting the first active one."""

        if self.current_warehouse_id:
            return self.current_warehouse_id
        warehouses = self.list_active_warehouses()
        if not warehouses:
            raise ShipdeskError("No active warehouses available")
        first = warehouses[0]
        self.set_current_warehouse(first.id, first.name)
        logger.info("Auto-selected warehouse %s", first.name)
        return first.id

    # -- inventory ------------------------------------------------------

    def fetch_inventory(
        self,
        warehouse_id: str | None = None,
        *,
        limit: int | None = None,
        timeout: float | None = None,
    ) -> list[InventoryItem]:
        warehouse_id = warehouse_id or self.ensure_warehouse()
        rows = self.backend.select(
            INVENTORY_TABLE,
            filters=[("is_active", "eq", True), ("warehouse_id", "eq", warehouse_id)],
            order="name",
            limit=limit or self.fetch_limit,
            timeout=timeout,
        )
        return [InventoryItem.from_row(row) for row in rows]

    def get_item(self, item_id: str) -> InventoryItem:
        row = self.backend.select(INVENTORY_TABLE, filters={"id": item_id}, maybe_single=True)
        if row is None:
            raise RecordNotFound("Inventory item not found", code="NOT_FOUND")
        return InventoryItem.from_row(row)

    def insert_inventory(
        self,
        item: InventoryItem,
        *,
        created_by: str,
        warehouse_id: str | None = None,
    ) -> InventoryItem:
        warehouse_id = warehouse_id or self.ensure_warehouse()
        timestamp = _now()
        row = item.to_row()
        row.update(
            {
                "warehouse_id": warehouse_id,
                "created_by": created_by,
                "is_active": True,
                "created_at": timestamp,
                "updated_at": timestamp,
                "barcode_digits": barcode_check_digits(item.barcode),
            }
        )
        inserted = self.backend.insert(INVENTORY_TABLE, row)
        if not inserted:
            raise BackendError("Insert returned no row", code="DATABASE_ERROR")
        created = InventoryItem.from_row(inserted[0])

        if created.id and item.quantity > 0:
            self.record_movement(
                created.id,
                MovementType.INITIAL_STOCK,
                previous_quantity=0,
                new_quantity=item.quantity,
                created_by=created_by,
                notes="Initial inventory creation",
            )
        logger.info("Inserted inventory item %s (%s)", created.name, created.id)
        return created

    def update_inventory(
        self,
        item_id: str,
        changes: Mapping[str, Any],
        *,
        updated_by: str,
    ) -> InventoryItem:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        current = self.get_item(item_id)
        values = {
            key: float(value) if isinstance(value, Decimal) else value
            for key, value in changes.items()
        }
        values["updated_at"] = _now()
        updated_rows = self.backend.update(INVENTORY_TABLE, values, filters={"id": item_id})
        if not updated_rows:
            raise RecordNotFound("Inventory item not found", code="NOT_FOUND")

        new_quantity = changes.get("quantity")
        if new_quantity is not None and int(new_quantity) != current.quantity:
            self.record_movement(
                item_id,
                MovementType.MANUAL_ADJUSTMENT,
                previous_quantity=current.quantity,
                new_quantity=int(new_quantity),
                created_by=updated_by,
                notes="Manual inventory update",
            )
        return InventoryItem.from_row(updated_rows[0])

    def delete_inventory(self, item_id: str, *, deleted_by: str) -> None:
        """Soft delete: the row stays but drops out of every listing."""

        current = self.get_item(item_id)
        self.backend.update(
            INVENTORY_TABLE,
            {"is_active": False, "updated_at": _now()},
            filters={"id": item_id},
        )
        if current.quantity > 0:
            self.record_movement(
                item_id,
                MovementType.DELETION,
                previous_quantity=current.quantity,
                new_quantity=0,
                created_by=deleted_by,
                notes="Item soft deleted",
            )
        logger.info("Soft deleted inventory item %s", item_id)

    def record_movement(
        self,
        inventory_id: str,
        movement_type: str,
        *,
        previous_quantity: int,
        new_quantity: int,
        created_by: str,
        notes: str | None = None,
    ) -> bool:
        """Append to the movement ledger.

        A failed write is logged and reported as ``False``; the stock change
        it describes has already been committed.
        """

        try:
            self.backend.insert(
                MOVEMENTS_TABLE,
                {
                    "inventory_id": inventory_id,
                    "movement_type": movement_type,
                    "quantity_changed": new_quantity - previous_quantity,
                    "previous_quantity": previous_quantity,
                    "new_quantity": new_quantity,
                    "created_by": created_by,
                    "notes": notes,
                    "created_at": _now(),
                },
            )
        except BackendError as exc:
            logger.warning(
                "Failed to record %s movement for %s: %s", movement_type, inventory_id, exc
            )
            return False
        return True

    # -- reports --------------------------------------------------------

    def generate_inventory_report(
        self,
        *,
        generated_by: str,
        warehouse_id: str | None = None,
    ) -> InventoryReport:
        warehouse_id = warehouse_id or self.ensure_warehouse()
        items = self.fetch_inventory(warehouse_id, timeout=self.export_timeout)
        name = self.current_warehouse_name if warehouse_id == self.current_warehouse_id else None
        return build_inventory_report(
            items,
            warehouse_name=name or warehouse_id,
            generated_by=generated_by,
        )
