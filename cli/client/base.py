"""Base HTTP Client for the enrollment bot status API"""

from typing import Any

import httpx
from rich.console import Console
from rich.panel import Panel

console = Console()


class EnrollBotError(Exception):
    """Base exception for status API errors"""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.details = details or {}


class APIClient:
    """HTTP client for the status API"""

    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        timeout: int = 30,
        headers: dict[str, str] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.default_headers = headers or {}
        self.client = httpx.Client(
            base_url=self.base_url, timeout=timeout, headers=self.default_headers
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.client.close()

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Unwrap the response envelope and surface API errors"""
        try:
            data = response.json()
        except Exception:
            console.print(f"[red]Failed to parse response: {response.text}[/red]")
            raise EnrollBotError(
                f"Invalid JSON response: {response.status_code}"
            ) from None

        if response.status_code >= 400:
            error = data.get("error", {})
            error_msg = error.get("message", "Unknown error")
            # 503 carries queue state; callers render it themselves
            if response.status_code != 503:
                console.print(Panel(f"[red]{error_msg}[/red]", title="API Error"))
            raise EnrollBotError(
                f"API Error {response.status_code}: {error_msg}",
                status_code=response.status_code,
                details=error.get("details", {}),
            )

        if "ok" in data:
            if not data.get("ok", False):
                error_msg = data.get("error", {}).get("message", "Request failed")
                raise EnrollBotError(error_msg)
            return data.get("data", {})

        return data

    def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make GET request under /v1"""
        try:
            response = self.client.get(f"/v1{path}", params=params)
            return self._handle_response(response)
        except httpx.RequestError as e:
            console.print(f"[red]Connection error: {e}[/red]")
            raise EnrollBotError(f"Connection failed: {e}") from None
