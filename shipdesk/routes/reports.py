from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify, request

from shipdesk.documents import (
    render_dispatch_slip,
    render_packing_slips,
    render_shipment_slip,
)
from shipdesk.errors import RecordNotFound
from shipdesk.services.report_export import (
    INVENTORY_COLUMNS,
    report_filename,
    report_preamble,
    report_rows,
)
from shipdesk.utils.csv_export import export_rows_to_csv


bp = Blueprint("reports", __name__, url_prefix="/reports")


def _components() -> dict:
    return current_app.extensions["shipdesk"]


def _pdf_response(content: bytes, filename: str) -> Response:
    response = Response(content, mimetype="application/pdf")
    disposition = "attachment" if request.args.get("download") else "inline"
    response.headers["Content-Disposition"] = f"{disposition}; filename={filename}"
    return response


def _shipper() -> dict[str, str]:
    return {
        "name": current_app.config.get("SHIPPER_NAME", ""),
        "address": current_app.config.get("SHIPPER_ADDRESS", ""),
        "phone": current_app.config.get("SHIPPER_PHONE", ""),
    }


@bp.get("/inventory.csv")
def inventory_csv():
    controller = _components()["inventory_controller"]
    user_name = request.headers.get("X-User-Name") or request.args.get("user_name")
    report = controller.export_report(user_name=user_name)
    if report is None:
        return jsonify({"success": False, **controller.state()}), 502
    current_app.logger.info(
        "Exporting inventory report for %s (%s items)", report.warehouse_name, report.total_items
    )
    return export_rows_to_csv(
        report_rows(report),
        INVENTORY_COLUMNS,
        report_filename(report),
        preamble=report_preamble(report),
    )


@bp.get("/shipments/<shipment_order_id>/slip.pdf")
def shipment_slip(shipment_order_id: str):
    shipments = _components()["shipments"]
    order = shipments.get_shipment(shipment_order_id)
    if order is None:
        raise RecordNotFound("Shipment not found", code="NOT_FOUND")
    customers = shipments.get_session_customers(shipment_order_id)
    products = shipments.get_shipment_products(shipment_order_id)
    content = render_shipment_slip(order, customers, products, shipper=_shipper())
    return _pdf_response(content, f"shipment_slip_{order.shipment_id}.pdf")


@bp.get("/shipments/<shipment_order_id>/dispatch-slip.pdf")
def dispatch_slip(shipment_order_id: str):
    shipments = _components()["shipments"]
    data = shipments.get_dispatch_slip_data(shipment_order_id)
    content = render_dispatch_slip(data)
    return _pdf_response(content, f"dispatch_{data['shipment']['id']}.pdf")


@bp.get("/packing/<session_id>/slips.pdf")
def packing_slips(session_id: str):
    shipments = _components()["shipments"]
    slips = shipments.get_packing_slip_data(
        session_id, default_packer=current_app.config.get("DEFAULT_USER_NAME", "Packer")
    )
    order_number = slips[0].order_number if slips else session_id
    return _pdf_response(render_packing_slips(slips), f"Packing_Slips_{order_number}.pdf")
