import os

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "supersecret")
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    LOG_DIR = os.getenv("LOG_DIR", os.path.join(BASE_DIR, "logs"))

    # Hosted PostgREST endpoint (Supabase project URL + anon/service key).
    SUPABASE_URL = os.getenv("SUPABASE_URL", "http://localhost:54321")
    SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")

    BACKEND_TIMEOUT = float(os.getenv("BACKEND_TIMEOUT", 15))
    EXPORT_TIMEOUT = float(os.getenv("EXPORT_TIMEOUT", 30))

    INVENTORY_FETCH_LIMIT = int(os.getenv("INVENTORY_FETCH_LIMIT", 1000))
    DISPATCHED_FETCH_LIMIT = int(os.getenv("DISPATCHED_FETCH_LIMIT", 50))
    SHIPMENT_CACHE_SECONDS = int(os.getenv("SHIPMENT_CACHE_SECONDS", 120))

    SEARCH_DEBOUNCE_SECONDS = float(os.getenv("SEARCH_DEBOUNCE_SECONDS", 0.5))
    MAX_CONSECUTIVE_ERRORS = int(os.getenv("MAX_CONSECUTIVE_ERRORS", 3))

    DEFAULT_USER_NAME = os.getenv("DEFAULT_USER_NAME", "Warehouse Staff")

    SHIPPER_NAME = os.getenv("SHIPPER_NAME", "Shipdesk Warehouse")
    SHIPPER_ADDRESS = os.getenv("SHIPPER_ADDRESS", "")
    SHIPPER_PHONE = os.getenv("SHIPPER_PHONE", "")
