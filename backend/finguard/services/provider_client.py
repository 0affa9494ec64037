"""Rate-limited, retrying client for the account-aggregation provider."""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from finguard.adapters.base import ProviderAdapter
from finguard.errors import ProviderError
from finguard.models.provider import (
    ExchangeTokenResponse,
    Institution,
    ItemStatus,
    LinkTokenResponse,
    ProviderAccount,
    RemoveItemResponse,
    TransactionsPage,
)
from finguard.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500

LINK_TOKEN_CREATE = "/link/token/create"
PUBLIC_TOKEN_EXCHANGE = "/item/public_token/exchange"
ACCOUNTS_GET = "/accounts/get"
BALANCE_GET = "/accounts/balance/get"
TRANSACTIONS_GET = "/transactions/get"
INSTITUTION_GET = "/institutions/get_by_id"
ITEM_REMOVE = "/item/remove"
ITEM_GET = "/item/get"


class ExternalApiClient:
    """Wraps provider calls with the rate limiter and bounded backoff."""

    def __init__(
        self,
        adapter: ProviderAdapter,
        rate_limiter: RateLimiter,
        max_retries: int = 3,
        retry_base_delay_ms: int = 1_000,
        slot_max_wait_ms: int = 30_000,
        slot_poll_interval_ms: int = 1_000,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        country_codes: Optional[List[str]] = None,
    ):
        self.adapter = adapter
        self.rate_limiter = rate_limiter
        self.max_retries = max_retries
        self.retry_base_delay_ms = retry_base_delay_ms
        self.slot_max_wait_ms = slot_max_wait_ms
        self.slot_poll_interval_ms = slot_poll_interval_ms
        self.country_codes = country_codes or ["US"]
        self._sleep = sleep or asyncio.sleep

    async def call(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        resource_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Issue one provider request once a rate-limit slot is available.

        Raises:
            RateLimitTimeout: No local slot opened in time
            ProviderError: Provider rejected the request or the transport failed
        """
        await self.rate_limiter.await_slot(
            endpoint,
            resource_id,
            max_wait_ms=self.slot_max_wait_ms,
            poll_interval_ms=self.slot_poll_interval_ms,
        )
        self.rate_limiter.record(endpoint, resource_id)

        try:
            return await self.adapter.request(endpoint, payload)
        except ProviderError:
            raise
        except Exception as e:
            logger.error("Unexpected transport failure on %s: %s", endpoint, e)
            raise ProviderError.network(e) from e

    async def call_with_retry(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        resource_id: Optional[str] = None,
        attempt: int = 0,
    ) -> Dict[str, Any]:
        """
        ``call`` with exponential backoff on provider-side throttling.

        Only rate-limit-class errors are retried, at most ``max_retries``
        times, waiting ``retry_base_delay_ms * 2**attempt`` before each retry.
        Every other error propagates unchanged.
        """
        while True:
            try:
                return await self.call(endpoint, payload, resource_id)
            except ProviderError as e:
                if not e.is_rate_limited or attempt >= self.max_retries:
                    raise
                delay_ms = self.retry_base_delay_ms * (2 ** attempt)
                logger.info(
                    "Provider throttled %s (attempt %d), retrying in %d ms",
                    endpoint, attempt, delay_ms,
                )
                await self._sleep(delay_ms / 1000)
                attempt += 1

    # ------------------------------------------------------------------
    # Endpoint surface
    # ------------------------------------------------------------------

    async def create_link_token(self, user_id: str, client_name: str = "Finguard") -> LinkTokenResponse:
        response = await self.call(LINK_TOKEN_CREATE, {
            "user": {"client_user_id": user_id},
            "client_name": client_name,
            "country_codes": self.country_codes,
            "language": "en",
            "products": ["transactions", "auth"],
            "account_filters": {
                "depository": {"account_subtypes": ["checking", "savings"]},
                "credit": {"account_subtypes": ["credit card"]},
            },
        })
        return LinkTokenResponse(**response)

    async def exchange_public_token(self, public_token: str) -> ExchangeTokenResponse:
        response = await self.call(PUBLIC_TOKEN_EXCHANGE, {"public_token": public_token})
        return ExchangeTokenResponse(**response)

    async def get_accounts(self, access_token: str, item_id: Optional[str] = None) -> List[ProviderAccount]:
        response = await self.call_with_retry(ACCOUNTS_GET, {"access_token": access_token}, item_id)
        return [ProviderAccount(**account) for account in response.get("accounts", [])]

    async def get_account_balances(
        self,
        access_token: str,
        account_ids: Optional[List[str]] = None,
        item_id: Optional[str] = None,
    ) -> List[ProviderAccount]:
        payload: Dict[str, Any] = {"access_token": access_token}
        if account_ids:
            payload["account_ids"] = list(account_ids)
        response = await self.call_with_retry(BALANCE_GET, payload, item_id)
        return [ProviderAccount(**account) for account in response.get("accounts", [])]

    @staticmethod
    def transactions_payload(
        access_token: str,
        start_date: str,
        end_date: str,
        count: int = 100,
        offset: int = 0,
        account_ids: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Request body for one page of ``/transactions/get``; count is clamped to 1..500."""
        payload: Dict[str, Any] = {
            "access_token": access_token,
            "start_date": start_date,
            "end_date": end_date,
            "count": max(1, min(count, MAX_PAGE_SIZE)),
            "offset": max(0, offset),
        }
        if account_ids:
            payload["account_ids"] = list(account_ids)
        return payload

    async def get_transactions(
        self,
        access_token: str,
        start_date: str,
        end_date: str,
        count: int = 100,
        offset: int = 0,
        account_ids: Optional[List[str]] = None,
        item_id: Optional[str] = None,
    ) -> TransactionsPage:
        """
        Fetch one page of transactions over a date range.

        Args:
            access_token: Item access token
            start_date: First day (YYYY-MM-DD)
            end_date: Last day (YYYY-MM-DD)
            count: Page size, capped at 500
            offset: Number of transactions to skip
            account_ids: Restrict to these accounts
            item_id: Scopes the rate-limit window to one item

        Returns:
            TransactionsPage with transactions, total_transactions and request_id
        """
        payload = self.transactions_payload(access_token, start_date, end_date, count, offset, account_ids)
        response = await self.call_with_retry(TRANSACTIONS_GET, payload, item_id)
        return TransactionsPage(**response)

    async def get_institution(self, institution_id: str) -> Institution:
        response = await self.call_with_retry(INSTITUTION_GET, {
            "institution_id": institution_id,
            "country_codes": self.country_codes,
        })
        return Institution(**response["institution"])

    async def remove_item(self, access_token: str) -> RemoveItemResponse:
        response = await self.call(ITEM_REMOVE, {"access_token": access_token})
        return RemoveItemResponse(request_id=response.get("request_id"))

    async def get_item_status(self, access_token: str, item_id: Optional[str] = None) -> ItemStatus:
        response = await self.call_with_retry(ITEM_GET, {"access_token": access_token}, item_id)
        item = dict(response.get("item") or {})
        if not item.get("status"):
            item["status"] = "bad" if item.get("error") else "good"
        return ItemStatus(**item)
