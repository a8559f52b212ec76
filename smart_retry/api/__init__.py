"""HTTP API for the Smart Retry decision service."""
from smart_retry.api.routes import router

__all__ = ["router"]
