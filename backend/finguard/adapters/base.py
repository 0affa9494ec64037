"""Base provider adapter interface."""
from abc import ABC, abstractmethod
from typing import Any, Dict


class ProviderAdapter(ABC):
    """Abstract base class for account-aggregation provider transports."""

    def __init__(self, name: str, **kwargs):
        """
        Initialize the adapter.

        Args:
            name: Identifier for the provider backend (e.g., "plaid", "mock")
            **kwargs: Additional provider-specific configuration
        """
        self.name = name
        self.config = kwargs

    @abstractmethod
    async def request(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Issue one request to the provider.

        Args:
            endpoint: Provider endpoint path (e.g., "/transactions/get")
            payload: Request body (credentials are added by the adapter)

        Returns:
            Parsed JSON response body

        Raises:
            ProviderError: On a non-success response or a transport failure
        """
        pass

    async def aclose(self) -> None:
        """Release transport resources."""
        return None
