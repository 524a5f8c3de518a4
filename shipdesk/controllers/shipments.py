"""Shipment-orders screen: draft and pending lists plus their actions."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from shipdesk.controllers.common import RecoveryChoice, ScreenController
from shipdesk.errors import (
    InvalidTransition,
    RecordNotFound,
    ShipdeskError,
    ValidationError,
)
from shipdesk.models import ShipmentOrder, ShipmentType
from shipdesk.services.multi_shipment import (
    MultiShipmentService,
    consolidation_candidates,
    merged_id_list,
)
from shipdesk.services.results import ErrorCode, OperationResult
from shipdesk.services.shipment_service import CartonContents, ShipmentService
from shipdesk.validation import validate_configuration
from shipdesk.workflow import (
    LoadingHandoff,
    ShipmentAction,
    allowed_actions,
    build_loading_handoff,
    require_transition,
)


logger = logging.getLogger(__name__)


class ShipmentsController(ScreenController):
    source = "shipments"

    def __init__(
        self,
        shipments: ShipmentService,
        multi_shipments: MultiShipmentService,
        *,
        user_name: str,
        max_consecutive_errors: int = 3,
    ) -> None:
        super().__init__(max_consecutive_errors=max_consecutive_errors)
        self.shipments = shipments
        self.multi_shipments = multi_shipments
        self.user_name = user_name
        self.drafts: list[ShipmentOrder] = []
        self.pending: list[ShipmentOrder] = []
        self.loaded = False

    # -- lists ----------------------------------------------------------

    def load_shipments(self, *, force_refresh: bool = False) -> bool:
        self.is_loading = True
        try:
            drafts = self.shipments.get_draft_shipments(force_refresh=force_refresh)
            pending = self.shipments.get_pending_shipments(force_refresh=force_refresh)
        except ShipdeskError as exc:
            self.handle_failure("Failed to load shipments", exc)
            return False

        self.drafts = drafts
        self.pending = pending
        self.loaded = True
        self.is_loading = False
        self.errors.record_success()
        logger.info("Loaded %s draft and %s pending shipments", len(drafts), len(pending))
        return True

    def ensure_loaded(self) -> None:
        if not self.loaded and not self.errors.prompt_open:
            self.load_shipments()

    def find(self, shipment_order_id: str) -> ShipmentOrder:
        for order in (*self.drafts, *self.pending):
            if order.id == shipment_order_id:
                return order
        order = self.shipments.get_shipment(shipment_order_id)
        if order is None:
            raise RecordNotFound("Shipment not found", code="NOT_FOUND")
        return order

    def _finish(self, result: OperationResult, title: str, *, blocking: bool = False) -> OperationResult:
        if result.ok:
            self.errors.record_success()
            self.notify_success(result.message)
            for warning in result.warnings:
                self.notify_warning(warning)
            self.load_shipments(force_refresh=True)
        elif result.error == ErrorCode.VALIDATION_ERROR:
            self.notify_invalid(title, result.message)
        else:
            self.handle_failure(title, result.message, blocking=blocking)
        return result

    # -- configure ------------------------------------------------------

    def configure(self, shipment_order_id: str, form: Mapping[str, Any]) -> OperationResult:
        """Validate the configure dialog, save it, then store the loading QR."""

        try:
            shipment_type, details, strategy = validate_configuration(
                form.get("shipment_type"),
                form.get("details") or {},
                form.get("destination"),
                form.get("loading_strategy"),
            )
        except ValidationError as exc:
            self.notify_invalid("Invalid configuration", exc)
            raise

        expected = form.get("expected_dispatch_at")
        expected_at = None
        if expected:
            try:
                expected_at = datetime.fromisoformat(str(expected))
            except ValueError:
                raise ValidationError(
                    {"expected_dispatch_at": "Please enter a valid dispatch date"}
                ) from None

        with self.guard.hold("Configure shipment"):
            result = self.shipments.configure_shipment(
                shipment_order_id,
                shipment_type=shipment_type,
                details=details,
                destination=str(form.get("destination") or "").strip(),
                special_instructions=(form.get("special_instructions") or "").strip() or None,
                loading_strategy=strategy,
                expected_dispatch_at=expected_at,
            )
            if result.ok:
                qr = self.shipments.generate_shipment_qr(shipment_order_id)
                if not qr.ok:
                    logger.warning(
                        "Shipment %s configured but QR was not generated: %s",
                        shipment_order_id,
                        qr.message,
                    )
                    result = OperationResult(
                        ok=True,
                        message=result.message,
                        data=dict(result.data),
                        warnings=(f"QR code not generated: {qr.message}",),
                    )
                else:
                    result = OperationResult(
                        ok=True,
                        message=result.message,
                        data={**result.data, "qr_data": qr.data.get("qr_data")},
                    )

        return self._finish(result, "Failed to configure shipment")

    # -- consolidation --------------------------------------------------

    def consolidation_options(self, shipment_order_id: str) -> dict[str, Any]:
        primary = self.find(shipment_order_id)
        if not primary.is_draft:
            raise InvalidTransition(
                "consolidate", primary.status, "Only draft shipments can be combined"
            )
        candidates = consolidation_candidates(primary, self.drafts)
        return {
            "primary": primary.as_dict(),
            "candidates": [order.as_dict() for order in candidates],
        }

    def consolidate(
        self,
        shipment_order_id: str,
        selected_ids: list[str],
        *,
        user_name: str | None = None,
    ) -> OperationResult:
        primary = self.find(shipment_order_id)
        require_transition(ShipmentAction.CONSOLIDATE, primary.status)
        self.ensure_loaded()
        allowed = {order.id for order in consolidation_candidates(primary, self.drafts)}
        ids = merged_id_list(primary.id, selected_ids)
        rejected = [shipment_id for shipment_id in ids[1:] if shipment_id not in allowed]
        if rejected:
            exc = ValidationError(
                {"shipment_ids": f"Only other draft shipments can be combined: {', '.join(rejected)}"}
            )
            self.notify_invalid("Failed to combine shipments", exc)
            raise exc

        with self.guard.hold("Combine shipments"):
            result = self.multi_shipments.create_multi_customer_shipment(
                ids, user_name or self.user_name
            )
        if result.ok:
            self.shipments.clear_cache()
        return self._finish(result, "Failed to combine shipments", blocking=True)

    # -- loading --------------------------------------------------------

    def start_loading(self, shipment_order_id: str) -> LoadingHandoff | None:
        with self.guard.hold("Start loading"):
            try:
                order = self.find(shipment_order_id)
                cartons = self.shipments.get_shipment_cartons(order.id)
                handoff = build_loading_handoff(order, cartons)
            except InvalidTransition as exc:
                self.notify_error("Cannot start loading", exc, blocking=True)
                raise
            except ShipdeskError as exc:
                self.handle_failure("Failed to prepare loading session", exc)
                return None

        self.errors.record_success()
        logger.info(
            "Prepared loading of %s: truck %s, %s cartons, %s",
            handoff.shipment_id,
            handoff.truck_number,
            handoff.total_cartons,
            handoff.loading_strategy,
        )
        return handoff

    # -- deletion -------------------------------------------------------

    def delete_draft(self, shipment_order_id: str) -> OperationResult:
        with self.guard.hold("Delete shipment"):
            result = self.shipments.delete_draft_shipment(shipment_order_id)
        return self._finish(result, "Failed to delete shipment", blocking=True)

    def delete_summary(self, shipment_order_id: str) -> dict[str, Any]:
        """Record summary shown before a permanent delete is confirmed."""

        order = self.find(shipment_order_id)
        return {
            "id": order.id,
            "shipment_id": order.shipment_id,
            "type": ShipmentType.LABELS.get(order.shipment_type, "Not configured"),
            "status": order.status_label,
            "customer": order.customer_name or "Unknown Customer",
            "destination": order.destination or "Not set",
            "cartons": order.total_cartons,
            "created_at": order.created_at.strftime("%d/%m/%Y %H:%M")
            if order.created_at
            else "Unknown",
            "warning": "This action cannot be undone.",
        }

    def delete_permanently(self, shipment_order_id: str, *, confirm: bool) -> OperationResult:
        if not confirm:
            raise ValidationError(
                {"confirm": "Confirm the permanent delete to continue"}
            )
        with self.guard.hold("Delete shipment permanently"):
            result = self.shipments.delete_shipment_permanently(shipment_order_id)
        return self._finish(result, "Failed to delete shipment", blocking=True)

    # -- cartons --------------------------------------------------------

    def cartons(self, shipment_order_id: str) -> list[dict[str, Any]]:
        return [carton.as_dict() for carton in self.shipments.get_shipment_cartons(shipment_order_id)]

    def carton_items(self, carton_barcode: str) -> CartonContents:
        return self.shipments.get_carton_items(carton_barcode.strip())

    # -- recovery -------------------------------------------------------

    def resolve_recovery(self, choice: str) -> bool:
        if choice not in RecoveryChoice.ALL_CHOICES:
            raise ValidationError({"action": "Choose reset or restart"})

        self.errors.resolve()
        self.guard.reset()
        self.is_loading = False
        if choice == RecoveryChoice.RESTART:
            return self.load_shipments(force_refresh=True)
        self.notify_info("Screen reset")
        return True

    def state(self) -> dict[str, Any]:
        data = self.screen_state()
        data.update(
            {
                "drafts": [self._row(order) for order in self.drafts],
                "pending": [self._row(order) for order in self.pending],
                "notices": self.notices(),
            }
        )
        return data

    @staticmethod
    def _row(order: ShipmentOrder) -> dict[str, Any]:
        row = order.as_dict()
        row["actions"] = allowed_actions(order.status)
        return row
