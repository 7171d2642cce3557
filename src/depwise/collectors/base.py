"""Base collector interface."""

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx


class BaseCollector(ABC):
    """Abstract base class for metadata collectors."""

    TIMEOUT = 30.0

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.client = client or httpx.AsyncClient(timeout=self.TIMEOUT)

    @abstractmethod
    async def collect(self, identifier: str) -> Any:
        """
        Collect data for the given identifier.

        Args:
            identifier: Package name or repository URL

        Returns:
            Collector-specific result object
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this collector is available (has required credentials, etc.)."""
        pass

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
