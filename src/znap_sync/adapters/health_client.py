"""Backend health-check client."""

from dataclasses import dataclass

import httpx

from znap_sync.services.availability import HealthClient


@dataclass
class HttpxHealthClient(HealthClient):
    """HTTPX-backed health client hitting `<base_url>/api/health`."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 2.0

    @classmethod
    def create(cls, base_url: str, timeout_seconds: float = 2.0) -> "HttpxHealthClient":
        """Create a health client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout_seconds=timeout_seconds,
        )

    async def ping(self) -> dict[str, object]:
        """Fetch the health payload."""
        response = await self.http_client.get(
            f"{self.base_url}/api/health",
            headers={"Accept": "application/json"},
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("Health payload is not an object")
        return payload

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
