"""Gunicorn configuration for the Shipdesk warehouse client API."""
import os

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:5000")

# Screen controllers live in process memory; one worker shares them.
workers = int(os.getenv("GUNICORN_WORKERS", "1"))
threads = int(os.getenv("GUNICORN_THREADS", "4"))

# Backend calls time out at 15s (30s for exports); leave headroom above that.
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))

accesslog = os.getenv("GUNICORN_ACCESS_LOGFILE", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOGFILE", "-")

forwarded_allow_ips = os.getenv("GUNICORN_FORWARDED_ALLOW_IPS", "*")
