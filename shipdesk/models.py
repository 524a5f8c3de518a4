"""Client-side records built from backend rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping


DEFAULT_MIN_STOCK = 10
DEFAULT_LOCATION = "Storage"
DEFAULT_CATEGORY = "General"


class ShipmentStatus:
    DRAFT = "draft"
    PENDING_DISPATCH = "pending_dispatch"
    LOADING = "loading"
    DISPATCHED = "dispatched"
    CANCELLED = "cancelled"
    # Never stored; marks a record removed during this session.
    DELETED = "deleted"

    CONFIGURED_STATES = {PENDING_DISPATCH}
    ALL_STATUSES = [DRAFT, PENDING_DISPATCH, LOADING, DISPATCHED, CANCELLED]
    LABELS = {
        DRAFT: "Draft",
        PENDING_DISPATCH: "Pending Dispatch",
        LOADING: "Loading",
        DISPATCHED: "Dispatched",
        CANCELLED: "Cancelled",
        DELETED: "Deleted",
    }


class ShipmentType:
    TRUCK = "truck"
    COURIER = "courier"
    IN_PERSON = "inPerson"

    ALL_TYPES = [TRUCK, COURIER, IN_PERSON]
    LABELS = {
        TRUCK: "Truck Shipment",
        COURIER: "Courier Dispatch",
        IN_PERSON: "In-Person Pickup",
    }
    DETAIL_COLUMNS = {
        TRUCK: "truck_details",
        COURIER: "courier_details",
        IN_PERSON: "in_person_details",
    }

    @classmethod
    def parse(cls, value: str | None) -> str | None:
        if not value:
            return None
        normalized = str(value).replace("_", "").replace("-", "").lower()
        for option in cls.ALL_TYPES:
            if option.lower() == normalized:
                return option
        return None


class LoadingStrategy:
    LIFO = "lifo"
    NON_LIFO = "non_lifo"

    ALL_STRATEGIES = [LIFO, NON_LIFO]
    LABELS = {LIFO: "LIFO", NON_LIFO: "NON-LIFO"}

    @classmethod
    def parse(cls, value: str | None) -> str | None:
        if not value:
            return None
        normalized = str(value).replace("_", "").replace("-", "").lower()
        if normalized == "lifo":
            return cls.LIFO
        # Older rows were written as "fifo" or "nonLifo".
        if normalized in {"nonlifo", "fifo"}:
            return cls.NON_LIFO
        return None

    @classmethod
    def handoff_code(cls, value: str | None) -> str:
        return (cls.parse(value) or cls.NON_LIFO).upper()


class OrderType:
    SINGLE = "single"
    MULTI = "multi"


class StockStatus:
    IN_STOCK = "InStock"
    LOW_STOCK = "LowStock"
    OUT_OF_STOCK = "OutOfStock"

    LABELS = {
        IN_STOCK: "In Stock",
        LOW_STOCK: "Low Stock",
        OUT_OF_STOCK: "Out of Stock",
    }


class MovementType:
    INITIAL_STOCK = "INITIAL_STOCK"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"
    DELETION = "DELETION"


def stock_status(quantity: int, min_stock: int) -> str:
    if quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity <= min_stock:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _as_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


def _as_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class Warehouse:
    id: str
    name: str
    address: str | None = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Warehouse":
        return cls(
            id=str(row.get("warehouse_id") or row.get("id") or ""),
            name=row.get("name") or "",
            address=row.get("address") or row.get("location"),
            is_active=bool(row.get("is_active", True)),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "is_active": self.is_active,
        }


@dataclass
class InventoryItem:
    id: str | None
    name: str
    sku: str
    barcode: str
    description: str = ""
    category: str = DEFAULT_CATEGORY
    quantity: int = 0
    min_stock: int = DEFAULT_MIN_STOCK
    unit_price: Decimal = field(default_factory=lambda: Decimal("0"))
    location: str = DEFAULT_LOCATION
    warehouse_id: str | None = None
    created_by: str | None = None
    is_active: bool = True
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "InventoryItem":
        min_stock = row.get("min_stock")
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            name=row.get("name") or "",
            sku=row.get("sku") or "",
            barcode=row.get("barcode") or "",
            description=row.get("description") or "",
            category=row.get("category") or DEFAULT_CATEGORY,
            quantity=_as_int(row.get("quantity")),
            min_stock=_as_int(min_stock, DEFAULT_MIN_STOCK),
            unit_price=_as_decimal(row.get("unit_price")),
            location=row.get("location") or DEFAULT_LOCATION,
            warehouse_id=row.get("warehouse_id"),
            created_by=row.get("created_by"),
            is_active=bool(row.get("is_active", True)),
            updated_at=parse_timestamp(row.get("updated_at")),
        )

    @property
    def stock_status(self) -> str:
        return stock_status(self.quantity, self.min_stock)

    @property
    def stock_status_label(self) -> str:
        return StockStatus.LABELS[self.stock_status]

    @property
    def total_value(self) -> Decimal:
        return self.unit_price * self.quantity

    def matches(self, term: str) -> bool:
        if not term:
            return True
        needle = term.lower()
        return (
            needle in self.name.lower()
            or needle in self.sku.lower()
            or needle in self.barcode.lower()
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "sku": self.sku,
            "barcode": self.barcode,
            "description": self.description,
            "category": self.category,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "unit_price": float(self.unit_price),
            "location": self.location,
        }

    def as_dict(self) -> dict[str, Any]:
        data = self.to_row()
        data.update(
            {
                "id": self.id,
                "unit_price": format(self.unit_price, "f"),
                "warehouse_id": self.warehouse_id,
                "created_by": self.created_by,
                "is_active": self.is_active,
                "updated_at": _isoformat(self.updated_at),
                "stock_status": self.stock_status,
                "stock_status_label": self.stock_status_label,
                "total_value": format(self.total_value, "f"),
            }
        )
        return data


@dataclass
class ShipmentOrder:
    id: str
    shipment_id: str
    status: str = ShipmentStatus.DRAFT
    order_type: str = OrderType.SINGLE
    shipment_type: str | None = None
    loading_strategy: str | None = None
    customer_name: str | None = None
    order_number: str | None = None
    destination: str | None = None
    special_instructions: str | None = None
    total_cartons: int = 0
    truck_details: dict[str, Any] | None = None
    courier_details: dict[str, Any] | None = None
    in_person_details: dict[str, Any] | None = None
    qr_data: dict[str, Any] | None = None
    slip_generated: bool = False
    warehouse_id: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    configured_at: datetime | None = None
    expected_dispatch_at: datetime | None = None
    loading_started_at: datetime | None = None
    dispatched_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ShipmentOrder":
        return cls(
            id=str(row.get("id") or ""),
            shipment_id=row.get("shipment_id") or "",
            status=row.get("status") or ShipmentStatus.DRAFT,
            order_type=row.get("order_type") or OrderType.SINGLE,
            shipment_type=ShipmentType.parse(row.get("shipment_type")),
            loading_strategy=LoadingStrategy.parse(row.get("loading_strategy")),
            customer_name=row.get("customer_name"),
            order_number=row.get("order_number"),
            destination=row.get("destination"),
            special_instructions=row.get("special_instructions"),
            total_cartons=_as_int(row.get("total_cartons")),
            truck_details=row.get("truck_details") or None,
            courier_details=row.get("courier_details") or None,
            in_person_details=row.get("in_person_details") or None,
            qr_data=row.get("qr_data") or None,
            slip_generated=bool(row.get("slip_generated")),
            warehouse_id=row.get("warehouse_id"),
            created_by=row.get("created_by"),
            created_at=parse_timestamp(row.get("created_at")),
            configured_at=parse_timestamp(row.get("configured_at")),
            expected_dispatch_at=parse_timestamp(row.get("expected_dispatch_at")),
            loading_started_at=parse_timestamp(row.get("loading_started_at")),
            dispatched_at=parse_timestamp(row.get("dispatched_at")),
        )

    @property
    def is_draft(self) -> bool:
        return self.status == ShipmentStatus.DRAFT

    @property
    def is_multi(self) -> bool:
        return self.order_type == OrderType.MULTI

    @property
    def status_label(self) -> str:
        return ShipmentStatus.LABELS.get(self.status, self.status.replace("_", " ").title())

    @property
    def details(self) -> dict[str, Any] | None:
        if self.shipment_type == ShipmentType.TRUCK:
            return self.truck_details
        if self.shipment_type == ShipmentType.COURIER:
            return self.courier_details
        if self.shipment_type == ShipmentType.IN_PERSON:
            return self.in_person_details
        return None

    @property
    def truck_number(self) -> str | None:
        number = str((self.truck_details or {}).get("truckNumber") or "").strip()
        return number or None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "shipment_id": self.shipment_id,
            "status": self.status,
            "status_label": self.status_label,
            "order_type": self.order_type,
            "shipment_type": self.shipment_type,
            "loading_strategy": self.loading_strategy,
            "customer_name": self.customer_name,
            "order_number": self.order_number,
            "destination": self.destination,
            "special_instructions": self.special_instructions,
            "total_cartons": self.total_cartons,
            "truck_details": self.truck_details,
            "courier_details": self.courier_details,
            "in_person_details": self.in_person_details,
            "slip_generated": self.slip_generated,
            "warehouse_id": self.warehouse_id,
            "created_by": self.created_by,
            "created_at": _isoformat(self.created_at),
            "configured_at": _isoformat(self.configured_at),
            "expected_dispatch_at": _isoformat(self.expected_dispatch_at),
            "loading_started_at": _isoformat(self.loading_started_at),
            "dispatched_at": _isoformat(self.dispatched_at),
        }


@dataclass
class Carton:
    carton_barcode: str
    id: str | None = None
    shipment_order_id: str | None = None
    customer_name: str | None = None
    loading_sequence: int | None = None
    is_loaded: bool = False
    loaded_at: datetime | None = None
    loaded_by: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Carton":
        sequence = row.get("loading_sequence")
        return cls(
            carton_barcode=row.get("carton_barcode") or "",
            id=str(row["id"]) if row.get("id") is not None else None,
            shipment_order_id=row.get("shipment_order_id"),
            customer_name=row.get("customer_name"),
            loading_sequence=_as_int(sequence) if sequence is not None else None,
            is_loaded=bool(row.get("is_loaded")),
            loaded_at=parse_timestamp(row.get("loaded_at")),
            loaded_by=row.get("loaded_by"),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "shipment_order_id": self.shipment_order_id,
            "carton_barcode": self.carton_barcode,
            "customer_name": self.customer_name,
            "loading_sequence": self.loading_sequence,
            "is_loaded": self.is_loaded,
            "loaded_at": _isoformat(self.loaded_at),
            "loaded_by": self.loaded_by,
        }


@dataclass
class CartonItem:
    product_name: str
    sku: str
    quantity: int
    customer_name: str | None = None
    added_at: datetime | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "product_name": self.product_name,
            "sku": self.sku,
            "quantity": self.quantity,
            "customer_name": self.customer_name,
            "added_at": _isoformat(self.added_at),
        }
