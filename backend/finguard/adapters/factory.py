"""Factory for creating provider adapters."""
from finguard.adapters.base import ProviderAdapter
from finguard.adapters.mock import MockProviderAdapter
from finguard.adapters.plaid_adapter import PlaidAdapter


def get_provider_adapter(name: str, **kwargs) -> ProviderAdapter:
    """
    Factory function to create the provider adapter named in configuration.

    Args:
        name: Adapter identifier ("mock", "plaid", "plaid:production")
        **kwargs: Additional configuration for the adapter

    Returns:
        ProviderAdapter instance
    """
    if name.startswith("mock"):
        return MockProviderAdapter(name, **kwargs)
    elif name.startswith("plaid"):
        if ":" in name and "environment" not in kwargs:
            kwargs["environment"] = name.split(":", 1)[1]
        return PlaidAdapter(name, **kwargs)
    else:
        raise ValueError(f"Unknown provider adapter: {name}")
