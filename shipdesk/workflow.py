"""Shipment status transitions and the loading hand-off snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from shipdesk.errors import InvalidTransition
from shipdesk.models import (
    Carton,
    LoadingStrategy,
    ShipmentOrder,
    ShipmentStatus,
    ShipmentType,
)


class ShipmentAction:
    CONFIGURE = "configure"
    START_LOADING = "start_loading"
    CONSOLIDATE = "consolidate"
    DELETE_DRAFT = "delete_draft"
    DELETE_PERMANENTLY = "delete_permanently"

    LABELS = {
        CONFIGURE: "Configure",
        START_LOADING: "Start Loading",
        CONSOLIDATE: "Combine Shipments",
        DELETE_DRAFT: "Delete",
        DELETE_PERMANENTLY: "Delete Permanently",
    }


# action -> (statuses it may start from, status it leads to)
TRANSITIONS: dict[str, tuple[frozenset[str], str]] = {
    ShipmentAction.CONFIGURE: (
        frozenset({ShipmentStatus.DRAFT}),
        ShipmentStatus.PENDING_DISPATCH,
    ),
    # Loading may be resumed after the loading screen was left part way.
    ShipmentAction.START_LOADING: (
        frozenset({ShipmentStatus.PENDING_DISPATCH, ShipmentStatus.LOADING}),
        ShipmentStatus.LOADING,
    ),
    ShipmentAction.CONSOLIDATE: (
        frozenset({ShipmentStatus.DRAFT}),
        ShipmentStatus.DRAFT,
    ),
    ShipmentAction.DELETE_DRAFT: (
        frozenset({ShipmentStatus.DRAFT}),
        ShipmentStatus.DELETED,
    ),
    ShipmentAction.DELETE_PERMANENTLY: (
        frozenset(ShipmentStatus.ALL_STATUSES),
        ShipmentStatus.DELETED,
    ),
}


def can_perform(action: str, status: str | None) -> bool:
    sources, _ = TRANSITIONS[action]
    return status in sources


def allowed_actions(status: str | None) -> list[str]:
    return [action for action in TRANSITIONS if can_perform(action, status)]


def require_transition(action: str, status: str | None) -> str:
    """Return the status ``action`` leads to, or raise InvalidTransition."""

    if action not in TRANSITIONS:
        raise InvalidTransition(action, status, f"Unknown shipment action: {action}")
    if not can_perform(action, status):
        if action == ShipmentAction.DELETE_DRAFT:
            raise InvalidTransition(
                action,
                status,
                "Only draft shipments can be deleted. "
                f"Current status: {status or 'unknown'}",
            )
        raise InvalidTransition(action, status)
    return TRANSITIONS[action][1]


@dataclass(frozen=True)
class LoadingHandoff:
    shipment_order_id: str
    shipment_id: str
    truck_number: str | None
    customer_name: str
    loading_strategy: str
    carton_barcodes: tuple[str, ...]

    @property
    def total_cartons(self) -> int:
        return len(self.carton_barcodes)

    def as_dict(self) -> dict[str, object]:
        return {
            "shipment_order_id": self.shipment_order_id,
            "shipment_id": self.shipment_id,
            "truck_number": self.truck_number,
            "customer_name": self.customer_name,
            "loading_strategy": self.loading_strategy,
            "carton_list": list(self.carton_barcodes),
            "total_cartons": self.total_cartons,
        }


def build_loading_handoff(order: ShipmentOrder, cartons: Iterable[Carton]) -> LoadingHandoff:
    """Snapshot everything the loading screen needs for ``order``.

    Raises :class:`InvalidTransition` when the order has no cartons or is a
    truck shipment without a truck number.
    """

    require_transition(ShipmentAction.START_LOADING, order.status)

    barcodes = tuple(
        carton.carton_barcode.strip().upper()
        for carton in cartons
        if carton.carton_barcode and carton.carton_barcode.strip()
    )
    if not barcodes:
        raise InvalidTransition(
            ShipmentAction.START_LOADING,
            order.status,
            "No Cartons Found: this shipment has no cartons to load.",
        )

    truck_number = order.truck_number
    if order.shipment_type == ShipmentType.TRUCK and not truck_number:
        raise InvalidTransition(
            ShipmentAction.START_LOADING,
            order.status,
            "Truck Not Assigned: configure a truck number before loading.",
        )

    customer_name = order.customer_name or (
        "Multiple Customers" if order.is_multi else "Unknown Customer"
    )
    return LoadingHandoff(
        shipment_order_id=order.id,
        shipment_id=order.shipment_id,
        truck_number=truck_number.upper() if truck_number else None,
        customer_name=customer_name,
        loading_strategy=LoadingStrategy.handoff_code(order.loading_strategy),
        carton_barcodes=barcodes,
    )
