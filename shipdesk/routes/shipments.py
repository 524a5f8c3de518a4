from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from shipdesk.controllers.shipments import ShipmentsController
from shipdesk.errors import ValidationError
from shipdesk.services.results import ErrorCode, OperationResult


bp = Blueprint("shipments", __name__, url_prefix="/shipments")

_RESULT_STATUS = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INVALID_STATUS: 409,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.TIMEOUT: 504,
}


def _controller() -> ShipmentsController:
    return current_app.extensions["shipdesk"]["shipments_controller"]


def _payload() -> dict:
    return request.get_json(silent=True) or request.form.to_dict()


def _user_name(payload: dict | None = None) -> str | None:
    name = request.headers.get("X-User-Name") or (payload or {}).get("user_name")
    return (name or "").strip() or None


def _result_response(result: OperationResult, success_status: int = 200):
    if result.ok:
        return jsonify(result.as_dict()), success_status
    return jsonify(result.as_dict()), _RESULT_STATUS.get(result.error, 502)


def _truthy(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


@bp.get("/")
def shipments_home():
    controller = _controller()
    controller.ensure_loaded()
    return jsonify(controller.state())


@bp.post("/refresh")
def refresh_shipments():
    controller = _controller()
    ok = controller.load_shipments(force_refresh=True)
    return jsonify({"success": ok, **controller.state()}), 200 if ok else 502


@bp.post("/recovery")
def recover():
    controller = _controller()
    ok = controller.resolve_recovery(str(_payload().get("action") or ""))
    return jsonify({"success": ok, **controller.state()}), 200 if ok else 502


@bp.post("/<shipment_order_id>/configure")
def configure_shipment(shipment_order_id: str):
    result = _controller().configure(shipment_order_id, _payload())
    return _result_response(result)


@bp.get("/<shipment_order_id>/consolidation")
def consolidation_options(shipment_order_id: str):
    controller = _controller()
    controller.ensure_loaded()
    return jsonify(controller.consolidation_options(shipment_order_id))


@bp.post("/<shipment_order_id>/consolidate")
def consolidate(shipment_order_id: str):
    payload = _payload()
    selected = payload.get("shipment_ids") or []
    if isinstance(selected, str):
        selected = [value.strip() for value in selected.split(",") if value.strip()]
    if not selected:
        raise ValidationError({"shipment_ids": "Select at least one shipment to combine"})
    result = _controller().consolidate(
        shipment_order_id, list(selected), user_name=_user_name(payload)
    )
    return _result_response(result, 201)


@bp.post("/<shipment_order_id>/start-loading")
def start_loading(shipment_order_id: str):
    handoff = _controller().start_loading(shipment_order_id)
    if handoff is None:
        return jsonify({"success": False, **_controller().state()}), 502
    return jsonify({"success": True, "handoff": handoff.as_dict()})


@bp.delete("/<shipment_order_id>")
def delete_draft(shipment_order_id: str):
    return _result_response(_controller().delete_draft(shipment_order_id))


@bp.get("/<shipment_order_id>/delete-summary")
def delete_summary(shipment_order_id: str):
    return jsonify(_controller().delete_summary(shipment_order_id))


@bp.post("/<shipment_order_id>/delete-permanently")
def delete_permanently(shipment_order_id: str):
    payload = _payload()
    result = _controller().delete_permanently(
        shipment_order_id, confirm=_truthy(payload.get("confirm"))
    )
    return _result_response(result)


@bp.get("/<shipment_order_id>/cartons")
def shipment_cartons(shipment_order_id: str):
    cartons = _controller().cartons(shipment_order_id)
    return jsonify({"shipment_order_id": shipment_order_id, "cartons": cartons, "total": len(cartons)})


@bp.get("/cartons/<carton_barcode>/items")
def carton_items(carton_barcode: str):
    return jsonify(_controller().carton_items(carton_barcode).as_dict())
