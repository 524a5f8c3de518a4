from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask

from config import Config

from .controllers.inventory import InventoryController
from .controllers.shipments import ShipmentsController
from .extensions import backend
from .routes import errors, health, inventory, reports, shipments
from .services.multi_shipment import MultiShipmentService
from .services.shipment_service import ShipmentService
from .services.warehouse_service import WarehouseService
from .utils.logging import assign_request_id, configure_logging


def _build_components(app: Flask) -> dict:
    """Wire services and screen controllers onto one backend client.

    Tests pass ``BACKEND_CLIENT`` to swap in an in-memory backend.
    """

    client = app.config.get("BACKEND_CLIENT") or backend
    user_name = app.config["DEFAULT_USER_NAME"]
    max_errors = int(app.config["MAX_CONSECUTIVE_ERRORS"])

    warehouses = WarehouseService(
        client,
        fetch_limit=int(app.config["INVENTORY_FETCH_LIMIT"]),
        export_timeout=float(app.config["EXPORT_TIMEOUT"]),
    )
    shipment_service = ShipmentService(
        client,
        cache_seconds=float(app.config["SHIPMENT_CACHE_SECONDS"]),
        dispatched_limit=int(app.config["DISPATCHED_FETCH_LIMIT"]),
    )
    multi_shipments = MultiShipmentService(client)
    # one-shot debounce jobs; started on first use
    scheduler = BackgroundScheduler(timezone="UTC")

    return {
        "backend": client,
        "warehouses": warehouses,
        "shipments": shipment_service,
        "multi_shipments": multi_shipments,
        "search_scheduler": scheduler,
        "inventory_controller": InventoryController(
            warehouses,
            user_name=user_name,
            debounce_seconds=float(app.config["SEARCH_DEBOUNCE_SECONDS"]),
            max_consecutive_errors=max_errors,
            scheduler=scheduler,
        ),
        "shipments_controller": ShipmentsController(
            shipment_service,
            multi_shipments,
            user_name=user_name,
            max_consecutive_errors=max_errors,
        ),
    }


def create_app(config_override=None):
    app = Flask(__name__)

    # load configuration from environment variables
    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)

    backend.init_app(app)
    app.extensions["shipdesk"] = _build_components(app)

    if not app.config.get("TESTING"):
        log_path = configure_logging(app)
        app.logger.info("Logging to %s", log_path)

    app.before_request(assign_request_id)

    app.register_blueprint(errors.bp)
    app.register_blueprint(health.bp)
    app.register_blueprint(inventory.bp)
    app.register_blueprint(shipments.bp)
    app.register_blueprint(reports.bp)

    return app
