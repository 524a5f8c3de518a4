"""Shipment order lists, configuration, deletion and slip data lookups."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping

from shipdesk.backend import BackendClient
from shipdesk.errors import BackendError, InvalidTransition, RecordNotFound
from shipdesk.models import (
    Carton,
    CartonItem,
    LoadingStrategy,
    OrderType,
    ShipmentOrder,
    ShipmentStatus,
    ShipmentType,
    parse_timestamp,
)
from shipdesk.services.results import ErrorCode, OperationResult
from shipdesk.workflow import ShipmentAction, require_transition


logger = logging.getLogger(__name__)

ORDERS_TABLE = "wms_shipment_orders"
ORDERS_VIEW = "wms_shipment_orders_with_customers"
SESSION_LINKS_TABLE = "wms_shipment_packaging_sessions"
SHIPMENT_CARTONS_TABLE = "wms_shipment_cartons"
DELIVERY_ROUTES_TABLE = "wms_delivery_routes"
PACKAGING_SESSIONS_TABLE = "packaging_sessions"
PACKAGE_CARTONS_TABLE = "package_cartons"
CARTON_ITEMS_TABLE = "carton_items"
PICKLIST_TABLE = "picklist"
CUSTOMER_ORDERS_TABLE = "customer_orders"


def _now() -> str:
    return datetime.utcnow().isoformat()


@dataclass
class CartonContents:
    carton_barcode: str
    items: list[CartonItem] = field(default_factory=list)

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def unique_items(self) -> int:
        return len(self.items)

    def as_dict(self) -> dict[str, Any]:
        return {
            "carton_barcode": self.carton_barcode,
            "items": [item.as_dict() for item in self.items],
            "total_items": self.total_items,
            "unique_items": self.unique_items,
        }


@dataclass
class PackingSlip:
    order_number: str
    customer_name: str
    customer_email: str
    customer_phone: str
    shipping_address: str
    box_number: int
    total_boxes: int
    carton_barcode: str
    box_type: str
    box_weight: float
    items: list[CartonItem]
    packed_by: str
    packed_date: datetime
    slip_id: str


class ShipmentService:
    """Reads and mutations for ``wms_shipment_orders`` and related tables.

    List reads are cached for ``cache_seconds``; every mutation clears the
    cache so the next list read goes to the backend.
    """

    def __init__(
        self,
        backend: BackendClient,
        *,
        cache_seconds: float = 120,
        dispatched_limit: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backend = backend
        self.cache_seconds = cache_seconds
        self.dispatched_limit = dispatched_limit
        self._clock = clock
        self._cache: dict[str, tuple[float, list[ShipmentOrder]]] = {}
        self._cache_lock = threading.Lock()

    # -- lists ----------------------------------------------------------

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def _cached(
        self,
        key: str,
        loader: Callable[[], list[ShipmentOrder]],
        force_refresh: bool,
    ) -> list[ShipmentOrder]:
        now = self._clock()
        with self._cache_lock:
            entry = self._cache.get(key)
        if entry and not force_refresh and now - entry[0] < self.cache_seconds:
            return list(entry[1])

        shipments = loader()
        with self._cache_lock:
            self._cache[key] = (now, shipments)
        return list(shipments)

    def _load_status(self, status: str, order: str, limit: int | None = None) -> list[ShipmentOrder]:
        rows = self.backend.select(
            ORDERS_VIEW,
            filters={"status": status},
            order=order,
            limit=limit,
        )
        return [ShipmentOrder.from_row(row) for row in rows]

    def get_draft_shipments(self, *, force_refresh: bool = False) -> list[ShipmentOrder]:
        return self._cached(
            "draft",
            lambda: self._load_status(ShipmentStatus.DRAFT, "created_at.desc"),
            force_refresh,
        )

    def get_pending_shipments(self, *, force_refresh: bool = False) -> list[ShipmentOrder]:
        return self._cached(
            "pending",
            lambda: self._load_status(ShipmentStatus.PENDING_DISPATCH, "configured_at.desc"),
            force_refresh,
        )

    def get_dispatched_shipments(
        self, *, limit: int | None = None, force_refresh: bool = False
    ) -> list[ShipmentOrder]:
        effective_limit = limit or self.dispatched_limit
        return self._cached(
            f"dispatched:{effective_limit}",
            lambda: self._load_status(
                ShipmentStatus.DISPATCHED, "dispatched_at.desc", effective_limit
            ),
            force_refresh,
        )

    def get_shipment(self, shipment_order_id: str) -> ShipmentOrder | None:
        row = self.backend.select(
            ORDERS_VIEW, filters={"id": shipment_order_id}, maybe_single=True
        )
        return ShipmentOrder.from_row(row) if row else None

    # -- deletion -------------------------------------------------------

    def delete_draft_shipment(self, shipment_order_id: str) -> OperationResult:
        return self._delete(shipment_order_id, permanent=False)

    def delete_shipment_permanently(self, shipment_order_id: str) -> OperationResult:
        return self._delete(shipment_order_id, permanent=True)

    def _delete(self, shipment_order_id: str, *, permanent: bool) -> OperationResult:
        action = "Permanent delete" if permanent else "Delete"
        try:
            row = self.backend.select(
                ORDERS_TABLE,
                columns="id,shipment_id,status,order_type",
                filters={"id": shipment_order_id},
                maybe_single=True,
            )
            if row is None:
                return OperationResult.failure(
                    "Shipment not found in database. It may have already been deleted.",
                    ErrorCode.NOT_FOUND,
                )

            shipment_id = row.get("shipment_id")
            status = row.get("status")
            try:
                require_transition(
                    ShipmentAction.DELETE_PERMANENTLY if permanent else ShipmentAction.DELETE_DRAFT,
                    status,
                )
            except InvalidTransition as exc:
                return OperationResult.failure(str(exc), ErrorCode.INVALID_STATUS)

            links = self.backend.select(
                SESSION_LINKS_TABLE,
                columns="packaging_session_id",
                filters={"shipment_order_id": shipment_order_id},
            )
            session_ids = [
                link["packaging_session_id"] for link in links if link.get("packaging_session_id")
            ]

            scope = {"shipment_order_id": shipment_order_id}
            self.backend.delete(SHIPMENT_CARTONS_TABLE, filters=scope)
            self.backend.delete(SESSION_LINKS_TABLE, filters=scope)
            if permanent:
                self.backend.delete(DELIVERY_ROUTES_TABLE, filters=scope)

            warnings: list[str] = []
            if session_ids:
                try:
                    self.backend.update(
                        PACKAGING_SESSIONS_TABLE,
                        {"shipment_order_created": False, "shipment_order_id": None},
                        filters=[("session_id", "in", session_ids)],
                    )
                except BackendError as exc:
                    logger.warning(
                        "Could not reset packaging sessions for %s: %s", shipment_id, exc
                    )
                    warnings.append("Packaging sessions could not be reset")

            self.backend.delete(ORDERS_TABLE, filters={"id": shipment_order_id})
        except Exception as exc:
            logger.exception("%s of shipment %s failed", action, shipment_order_id)
            return OperationResult.from_exception(exc, action)
        finally:
            self.clear_cache()

        logger.info(
            "%s of shipment %s complete (%s sessions reset)",
            action,
            shipment_id,
            len(session_ids),
        )
        message = "Shipment permanently deleted" if permanent else "Shipment deleted successfully"
        return OperationResult(
            ok=True,
            message=message,
            data={
                "deleted_id": shipment_id,
                "details": {
                    "shipment_id": shipment_id,
                    "previous_status": status,
                    "cartons_deleted": True,
                    "packaging_sessions_reset": len(session_ids),
                    "session_ids": session_ids,
                },
            },
            warnings=tuple(warnings),
        )

    # -- configuration --------------------------------------------------

    def configure_shipment(
        self,
        shipment_order_id: str,
        *,
        shipment_type: str,
        details: Mapping[str, Any],
        destination: str | None,
        special_instructions: str | None = None,
        loading_strategy: str | None = None,
        expected_dispatch_at: datetime | None = None,
    ) -> OperationResult:
        """Move a draft to ``pending_dispatch`` with its delivery details.

        Only the detail column matching ``shipment_type`` is filled; the
        other two are cleared.
        """

        try:
            row = self.backend.select(
                ORDERS_TABLE,
                columns="id,status,order_type",
                filters={"id": shipment_order_id},
                maybe_single=True,
            )
            if row is None:
                return OperationResult.failure("Shipment not found", ErrorCode.NOT_FOUND)
            try:
                new_status = require_transition(ShipmentAction.CONFIGURE, row.get("status"))
            except InvalidTransition as exc:
                return OperationResult.failure(str(exc), ErrorCode.INVALID_STATUS)

            parsed_type = ShipmentType.parse(shipment_type)
            if parsed_type is None:
                return OperationResult.failure(
                    f"Unknown shipment type: {shipment_type}", ErrorCode.VALIDATION_ERROR
                )
            if not details:
                return OperationResult.failure(
                    f"{ShipmentType.LABELS[parsed_type]} details required",
                    ErrorCode.VALIDATION_ERROR,
                )

            is_multi = row.get("order_type") == OrderType.MULTI
            strategy = LoadingStrategy.parse(loading_strategy)
            if strategy is None and (parsed_type == ShipmentType.TRUCK or is_multi):
                strategy = LoadingStrategy.NON_LIFO

            values: dict[str, Any] = {
                "status": new_status,
                "shipment_type": parsed_type,
                "loading_strategy": strategy,
                "truck_details": None,
                "courier_details": None,
                "in_person_details": None,
                "destination": destination,
                "special_instructions": special_instructions or None,
                "expected_dispatch_at": expected_dispatch_at.isoformat()
                if expected_dispatch_at
                else None,
                "configured_at": _now(),
            }
            values[ShipmentType.DETAIL_COLUMNS[parsed_type]] = dict(details)
            self.backend.update(ORDERS_TABLE, values, filters={"id": shipment_order_id})
        except Exception as exc:
            logger.exception("Configuring shipment %s failed", shipment_order_id)
            return OperationResult.from_exception(exc, "Configure shipment")
        finally:
            self.clear_cache()

        label = "Multi-customer" if is_multi else "Single"
        logger.info("Configured shipment %s as %s", shipment_order_id, parsed_type)
        return OperationResult.success(f"{label} shipment configured", status=new_status)

    def generate_shipment_qr(self, shipment_order_id: str) -> OperationResult:
        """Build the loading QR payload and store it on the order."""

        try:
            row = self.backend.select(
                ORDERS_TABLE, filters={"id": shipment_order_id}, maybe_single=True
            )
            if row is None:
                return OperationResult.failure("Shipment not found", ErrorCode.NOT_FOUND)

            sessions = self.backend.select(
                SESSION_LINKS_TABLE, filters={"shipment_order_id": shipment_order_id}
            )
            if not sessions:
                return OperationResult.failure(
                    "No packaging sessions found for this shipment", ErrorCode.NOT_FOUND
                )

            cartons = self.backend.select(
                SHIPMENT_CARTONS_TABLE,
                columns="carton_barcode,customer_name",
                filters={"shipment_order_id": shipment_order_id},
            )
            if not cartons:
                return OperationResult.failure(
                    "No cartons found for this shipment", ErrorCode.NOT_FOUND
                )

            qr_data = build_shipment_qr_payload(row, sessions, cartons)
            self.backend.update(
                ORDERS_TABLE,
                {"qr_data": qr_data, "slip_generated": True},
                filters={"id": shipment_order_id},
            )
        except Exception as exc:
            logger.exception("Generating QR for shipment %s failed", shipment_order_id)
            return OperationResult.from_exception(exc, "Generate QR")
        finally:
            self.clear_cache()

        return OperationResult.success("QR code generated successfully", qr_data=qr_data)

    # -- cartons --------------------------------------------------------

    def get_shipment_cartons(self, shipment_order_id: str) -> list[Carton]:
        rows = self.backend.select(
            SHIPMENT_CARTONS_TABLE,
            filters={"shipment_order_id": shipment_order_id},
            order="loading_sequence",
        )
        return [Carton.from_row(row) for row in rows]

    def get_carton_items(self, carton_barcode: str) -> CartonContents:
        """Resolve the products packed in one carton.

        Each carton item triggers its own picklist lookup.
        """

        contents = CartonContents(carton_barcode=carton_barcode)
        carton = self.backend.select(
            PACKAGE_CARTONS_TABLE,
            columns="id",
            filters={"carton_barcode": carton_barcode},
            maybe_single=True,
        )
        if carton is None:
            logger.info("Package carton %s not found", carton_barcode)
            return contents

        rows = self.backend.select(
            CARTON_ITEMS_TABLE,
            columns="id,quantity,added_at,picklist_item_id",
            filters={"carton_id": carton["id"]},
        )
        for row in rows:
            picklist_item = None
            if row.get("picklist_item_id") is not None:
                picklist_item = self.backend.select(
                    PICKLIST_TABLE,
                    columns="item_name,sku",
                    filters={"id": row["picklist_item_id"]},
                    maybe_single=True,
                )
            picklist_item = picklist_item or {}
            contents.items.append(
                CartonItem(
                    product_name=picklist_item.get("item_name") or "Unknown Product",
                    sku=picklist_item.get("sku") or "N/A",
                    quantity=int(row.get("quantity") or 0),
                    added_at=parse_timestamp(row.get("added_at")),
                )
            )
        return contents

    def get_shipment_products(self, shipment_order_id: str) -> list[CartonItem]:
        """Every carton item of a shipment, tagged with its customer."""

        products: list[CartonItem] = []
        for carton in self.get_shipment_cartons(shipment_order_id):
            contents = self.get_carton_items(carton.carton_barcode)
            for item in contents.items:
                item.customer_name = carton.customer_name
                products.append(item)
        return products

    # -- customers and slips --------------------------------------------

    def _customer_order_for_session(self, packaging_session_id: str | None) -> dict[str, Any]:
        if not packaging_session_id:
            return {}
        session = self.backend.select(
            PACKAGING_SESSIONS_TABLE,
            columns="order_id",
            filters={"session_id": packaging_session_id},
            maybe_single=True,
        )
        if not session or not session.get("order_id"):
            return {}
        order = self.backend.select(
            CUSTOMER_ORDERS_TABLE,
            filters={"order_id": session["order_id"]},
            maybe_single=True,
        )
        return order or {}

    def get_session_customers(self, shipment_order_id: str) -> list[dict[str, Any]]:
        """One entry per customer order grouped under the shipment."""

        links = self.backend.select(
            SESSION_LINKS_TABLE, filters={"shipment_order_id": shipment_order_id}
        )
        customers = []
        for link in links:
            order = self._customer_order_for_session(link.get("packaging_session_id"))
            customers.append(
                {
                    "customer_name": order.get("customer_name")
                    or link.get("customer_name")
                    or "Unknown Customer",
                    "order_number": link.get("order_number") or order.get("order_number") or "",
                    "carton_count": int(link.get("carton_count") or 0),
                    "customer_email": order.get("customer_email") or "",
                    "customer_phone": order.get("customer_phone") or "",
                    "bill_to_address": order.get("bill_to_address") or "N/A",
                    "ship_to_address": order.get("ship_to_address") or "N/A",
                }
            )
        return customers

    def get_dispatch_slip_data(self, shipment_order_id: str) -> dict[str, Any]:
        """Collect driver, stop and carton details for the dispatch slip."""

        row = self.backend.select(
            ORDERS_TABLE, filters={"id": shipment_order_id}, maybe_single=True
        )
        if row is None:
            raise RecordNotFound("Shipment not found", code=ErrorCode.NOT_FOUND)
        order = ShipmentOrder.from_row(row)

        truck = order.truck_details or {}
        driver = {
            "driver_name": truck.get("driverName") or "N/A",
            "phone_number": truck.get("driverPhone") or "N/A",
            "license_id": truck.get("licenseId") or "N/A",
            "vehicle_registration": truck.get("truckNumber") or "N/A",
        }

        routes = self.get_session_customers(shipment_order_id)
        cartons = self.get_shipment_cartons(shipment_order_id)

        cartons_by_stop: dict[int, list[dict[str, Any]]] = {}
        for stop, route in enumerate(routes, start=1):
            stop_cartons = []
            for carton in cartons:
                if carton.customer_name != route["customer_name"]:
                    continue
                contents = self.get_carton_items(carton.carton_barcode)
                stop_cartons.append(
                    {
                        "carton_barcode": carton.carton_barcode,
                        "customer_name": carton.customer_name,
                        "quantity": contents.total_items,
                        "products": {
                            "product_name": contents.items[0].product_name
                            if contents.items
                            else "Mixed Items",
                            "items": [item.as_dict() for item in contents.items],
                            "item_count": contents.unique_items,
                        },
                    }
                )
            cartons_by_stop[stop] = stop_cartons

        return {
            "shipment": {
                "id": order.shipment_id,
                "truck_number": truck.get("truckNumber") or "N/A",
                "status": order.status,
                "loading_strategy": order.loading_strategy,
                "destination": order.destination,
                "shipment_type": order.shipment_type,
                "total_cartons": len(cartons),
            },
            "driver": driver,
            "routes": routes,
            "cartons_by_stop": cartons_by_stop,
        }

    def get_packing_slip_data(
        self, packaging_session_id: str, *, default_packer: str = "Packer"
    ) -> list[PackingSlip]:
        """One slip per carton of a packaging session, in box order."""

        session = self.backend.select(
            PACKAGING_SESSIONS_TABLE,
            filters={"session_id": packaging_session_id},
            maybe_single=True,
        )
        if session is None:
            raise RecordNotFound("Packaging session not found", code=ErrorCode.NOT_FOUND)

        order = {}
        if session.get("order_id"):
            order = self.backend.select(
                CUSTOMER_ORDERS_TABLE,
                filters={"order_id": session["order_id"]},
                maybe_single=True,
            ) or {}

        cartons = self.backend.select(
            PACKAGE_CARTONS_TABLE,
            filters={"packaging_session_id": packaging_session_id},
            order="box_number",
        )
        packed_date = (
            parse_timestamp(session.get("completed_at"))
            or parse_timestamp(session.get("started_at"))
            or datetime.now()
        )
        slips = []
        for carton in cartons:
            barcode = carton.get("carton_barcode") or ""
            contents = self.get_carton_items(barcode)
            box_number = int(carton.get("box_number") or len(slips) + 1)
            weight = carton.get("actual_weight") or carton.get("estimated_weight") or 0
            slips.append(
                PackingSlip(
                    order_number=order.get("order_number") or session.get("order_number") or "",
                    customer_name=order.get("customer_name") or session.get("customer_name") or "",
                    customer_email=order.get("customer_email") or "",
                    customer_phone=order.get("customer_phone") or "",
                    shipping_address=order.get("ship_to_address") or "",
                    box_number=box_number,
                    total_boxes=len(cartons),
                    carton_barcode=barcode,
                    box_type=carton.get("box_type") or "medium",
                    box_weight=float(weight),
                    items=contents.items,
                    packed_by=session.get("packaged_by") or default_packer,
                    packed_date=packed_date,
                    slip_id=f"{packaging_session_id}-BOX{box_number}",
                )
            )
        return slips


def build_shipment_qr_payload(
    order_row: Mapping[str, Any],
    sessions: list[Mapping[str, Any]],
    cartons: list[Mapping[str, Any]],
) -> dict[str, Any]:
    """Compact JSON stored on the order and encoded into the loading QR."""

    shipment_type = ShipmentType.parse(order_row.get("shipment_type"))
    barcodes = [carton["carton_barcode"] for carton in cartons]
    payload: dict[str, Any] = {
        "shipmentid": order_row.get("shipment_id"),
        "shipmenttype": shipment_type or "unknown",
        "loadingstrategy": LoadingStrategy.parse(order_row.get("loading_strategy")),
        "destination": order_row.get("destination") or "",
        "cartons": barcodes,
        "totalcartons": len(barcodes),
        "createdat": _now(),
    }
    if shipment_type == ShipmentType.TRUCK:
        payload["truckdetails"] = order_row.get("truck_details")
    elif shipment_type == ShipmentType.COURIER:
        payload["courierdetails"] = order_row.get("courier_details")
    elif shipment_type == ShipmentType.IN_PERSON:
        payload["inpersondetails"] = order_row.get("in_person_details")

    if order_row.get("order_type") == OrderType.MULTI:
        payload["customers"] = [
            {
                "customername": session.get("customer_name"),
                "ordernumber": session.get("order_number"),
            }
            for session in sessions
        ]
    else:
        payload["customername"] = sessions[0].get("customer_name")
        payload["ordernumber"] = sessions[0].get("order_number")
    return payload
