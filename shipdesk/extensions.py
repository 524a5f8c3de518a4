from .backend import BackendClient

backend = BackendClient()
