from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from shipdesk.controllers.inventory import InventoryController


bp = Blueprint("inventory", __name__, url_prefix="/inventory")


def _controller() -> InventoryController:
    return current_app.extensions["shipdesk"]["inventory_controller"]


def _payload() -> dict:
    return request.get_json(silent=True) or request.form.to_dict()


def _user_name(payload: dict | None = None) -> str | None:
    name = request.headers.get("X-User-Name") or (payload or {}).get("user_name")
    return (name or "").strip() or None


def _state_response(ok: bool, status: int = 200):
    controller = _controller()
    return jsonify({"success": ok, **controller.state()}), status if ok else 502


@bp.get("/warehouses")
def list_warehouses():
    service = current_app.extensions["shipdesk"]["warehouses"]
    warehouses = service.list_active_warehouses()
    return jsonify(
        {
            "current": service.current_warehouse_id,
            "warehouses": [warehouse.as_dict() for warehouse in warehouses],
        }
    )


@bp.post("/warehouses/<warehouse_id>/select")
def select_warehouse(warehouse_id: str):
    warehouse = _controller().select_warehouse(warehouse_id)
    return _state_response(warehouse is not None)


@bp.get("/")
def inventory_home():
    controller = _controller()
    controller.ensure_loaded()
    if "q" in request.args:
        controller.search(request.args.get("q", ""))
        controller.flush_search()
    if "category" in request.args:
        controller.set_category(request.args.get("category"))
    return jsonify(controller.state())


@bp.post("/search")
def search_inventory():
    payload = _payload()
    controller = _controller()
    controller.search(str(payload.get("q") or ""))
    return jsonify({"queued": True, "search_pending": True}), 202


@bp.post("/refresh")
def refresh_inventory():
    return _state_response(_controller().load_inventory())


@bp.post("/items")
def add_item():
    payload = _payload()
    item = _controller().add_item(payload, user_name=_user_name(payload))
    if item is None:
        return _state_response(False)
    current_app.logger.info("Inventory item %s added", item.id)
    return jsonify({"success": True, "item": item.as_dict()}), 201


@bp.patch("/items/<item_id>")
def update_item(item_id: str):
    payload = _payload()
    controller = _controller()
    user_name = _user_name(payload)
    fields = set(payload) - {"user_name"}
    if fields == {"quantity"}:
        item = controller.update_quantity(item_id, payload["quantity"], user_name=user_name)
    else:
        item = controller.update_item(item_id, payload, user_name=user_name)
    if item is None:
        return _state_response(False)
    return jsonify({"success": True, "item": item.as_dict()})


@bp.delete("/items/<item_id>")
def delete_item(item_id: str):
    deleted = _controller().delete_item(item_id, user_name=_user_name())
    if not deleted:
        return _state_response(False)
    return jsonify({"success": True, "deleted_id": item_id})


@bp.post("/recovery")
def recover():
    payload = _payload()
    ok = _controller().resolve_recovery(str(payload.get("action") or ""))
    return _state_response(ok)
