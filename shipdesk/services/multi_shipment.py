"""Consolidation of draft shipments into one multi-customer shipment."""

from __future__ import annotations

import logging
from typing import Iterable

from shipdesk.backend import BackendClient
from shipdesk.models import ShipmentOrder
from shipdesk.services.results import ErrorCode, OperationResult


logger = logging.getLogger(__name__)

CREATE_MULTI_SHIPMENT_RPC = "create_multi_customer_shipment"
MIN_SHIPMENTS = 2


def consolidation_candidates(
    primary: ShipmentOrder, drafts: Iterable[ShipmentOrder]
) -> list[ShipmentOrder]:
    """Drafts that may be combined with ``primary``.

    Only the primary itself is excluded; destinations and routes are not
    compared.
    """

    return [draft for draft in drafts if draft.is_draft and draft.id != primary.id]


def merged_id_list(primary_id: str, selected_ids: Iterable[str]) -> list[str]:
    """``[primary, *selected]`` without repeats."""

    merged = [primary_id]
    for shipment_id in selected_ids:
        if shipment_id and shipment_id not in merged:
            merged.append(shipment_id)
    return merged


class MultiShipmentService:
    """Submits consolidations as a single backend RPC.

    The RPC either creates the multi-customer order, its carton rows and
    session links, and absorbs the source drafts, or changes nothing.
    """

    def __init__(self, backend: BackendClient) -> None:
        self.backend = backend

    def create_multi_customer_shipment(
        self, shipment_order_ids: list[str], user_name: str
    ) -> OperationResult:
        unique_ids = list(dict.fromkeys(i for i in shipment_order_ids if i))
        if len(unique_ids) < MIN_SHIPMENTS:
            return OperationResult.failure(
                "Multi-customer shipment requires at least 2 shipments",
                ErrorCode.VALIDATION_ERROR,
            )
        if not (user_name or "").strip():
            return OperationResult.failure(
                "User name is required", ErrorCode.VALIDATION_ERROR
            )

        try:
            response = self.backend.rpc(
                CREATE_MULTI_SHIPMENT_RPC,
                {"p_shipment_order_ids": unique_ids, "p_user_name": user_name.strip()},
            )
        except Exception as exc:
            logger.exception("Creating multi-customer shipment from %s failed", unique_ids)
            return OperationResult.from_exception(exc, "Create multi-customer shipment")

        payload = response if isinstance(response, dict) else {}
        if not payload.get("success", False):
            message = payload.get("message") or "Multi-customer shipment could not be created"
            return OperationResult.failure(
                message, payload.get("error") or ErrorCode.DATABASE_ERROR
            )

        customer_count = int(payload.get("customer_count") or len(unique_ids))
        logger.info(
            "Created multi-customer shipment %s from %s drafts",
            payload.get("shipment_id"),
            len(unique_ids),
        )
        return OperationResult.success(
            payload.get("message") or "Multi-customer shipment created successfully",
            shipment_id=payload.get("shipment_id"),
            shipment_order_id=payload.get("shipment_order_id"),
            customer_count=customer_count,
            total_cartons=int(payload.get("total_cartons") or 0),
        )
