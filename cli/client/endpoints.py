"""API Endpoint Wrappers"""

from typing import Any

from .base import APIClient
from ..utils.config_manager import config


class EnrollBotClient:
    """High-level client for the status endpoints"""

    def __init__(self, base_url: str | None = None):
        api_config = config.load_config().get("api", {})
        self.api = APIClient(
            base_url=base_url or api_config.get("base_url", "http://localhost:3001"),
            timeout=api_config.get("timeout", 30),
        )

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    def health_check(self) -> dict[str, Any]:
        """Service health with worker status"""
        return self.api.get("/healthz")

    def queue_stats(self) -> dict[str, Any]:
        """Queue depths and document totals"""
        return self.api.get("/queue/stats")
