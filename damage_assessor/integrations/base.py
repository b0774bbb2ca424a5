from abc import ABC, abstractmethod
from typing import Any

import httpx

from damage_assessor.common.logging import get_logger


class BaseIntegration(ABC):
    """Base class for HTTP services the assessor talks to.

    Owns one ``httpx.AsyncClient`` per integration and a logger named after
    it. Subclasses add the service calls and a ``health_check``.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.logger = get_logger(f"integrations.{name}")
        self._client = httpx.AsyncClient(base_url=self.base_url, transport=transport, timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True when the service is reachable and answering."""
        ...
