from .common import aggregate_products, truncate_address
from .dispatch_slip import render_dispatch_slip
from .packing_slip import packing_slip_qr_payload, render_packing_slips
from .shipment_slip import render_shipment_slip, slip_title, visible_products

__all__ = [
    "aggregate_products",
    "packing_slip_qr_payload",
    "render_dispatch_slip",
    "render_packing_slips",
    "render_shipment_slip",
    "slip_title",
    "truncate_address",
    "visible_products",
]
