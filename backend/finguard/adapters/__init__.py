from .base import ProviderAdapter
from .mock import MockProviderAdapter
from .plaid_adapter import PlaidAdapter
from .factory import get_provider_adapter

__all__ = [
    "ProviderAdapter",
    "MockProviderAdapter",
    "PlaidAdapter",
    "get_provider_adapter",
]
