"""Plaid-style account-aggregation API adapter over httpx."""
import logging
from typing import Any, Dict, Optional

import httpx

from finguard.adapters.base import ProviderAdapter
from finguard.config import settings
from finguard.errors import ProviderError

logger = logging.getLogger(__name__)

BASE_URLS = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}


class PlaidAdapter(ProviderAdapter):
    """JSON-over-POST transport with client credentials injected into each body."""

    def __init__(self, name: str = "plaid", **kwargs):
        super().__init__(name, **kwargs)
        self.client_id = kwargs.get("client_id") or settings.provider_client_id
        self.secret = kwargs.get("secret") or settings.provider_secret
        if not self.client_id or not self.secret:
            raise ValueError(
                "Provider credentials required. Set FINGUARD_PROVIDER_CLIENT_ID and FINGUARD_PROVIDER_SECRET in .env"
            )
        environment = kwargs.get("environment") or settings.provider_env
        if environment not in BASE_URLS:
            raise ValueError(f"Unknown provider environment: {environment}")
        self.base_url = kwargs.get("base_url") or BASE_URLS[environment]
        self.version = kwargs.get("version") or settings.provider_version
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=kwargs.get("timeout") or settings.http_timeout_seconds,
            transport=kwargs.get("transport"),
            headers={
                "Content-Type": "application/json",
                "Plaid-Version": self.version,
            },
        )

    async def request(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = {"client_id": self.client_id, "secret": self.secret, **payload}
        try:
            resp = await self.client.post(endpoint, json=body)
        except httpx.HTTPError as e:
            logger.error("Provider transport error on %s: %s", endpoint, e)
            raise ProviderError.network(e) from e

        data = self._json_or_none(resp)
        if resp.status_code >= 400:
            error = ProviderError.from_response(data if data is not None else resp.text, resp.status_code)
            logger.error(
                "Provider API error %s on %s: %s/%s (request_id=%s)",
                resp.status_code, endpoint, error.error_type, error.error_code, error.request_id,
            )
            raise error
        if not isinstance(data, dict):
            raise ProviderError(
                error_type="API_ERROR",
                error_code="INVALID_RESPONSE",
                error_message=f"Non-JSON response from {endpoint}",
                status_code=resp.status_code,
            )
        return data

    @staticmethod
    def _json_or_none(resp: httpx.Response) -> Optional[Any]:
        try:
            return resp.json()
        except ValueError:
            return None

    async def aclose(self) -> None:
        await self.client.aclose()
