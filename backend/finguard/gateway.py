"""Composition root wiring validation, sanitization and provider access."""
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from finguard.adapters.base import ProviderAdapter
from finguard.adapters.factory import get_provider_adapter
from finguard.config import Settings, settings as default_settings
from finguard.errors import InvalidDataType, ItemNotFound, ProviderError, UnauthorizedError, ValidationError
from finguard.models.provider import (
    ExchangeTokenResponse,
    Institution,
    ItemStatus,
    LinkTokenResponse,
    ProviderAccount,
    ProviderTransaction,
    TransactionsPage,
)
from finguard.models.records import FreeTierStatus, LinkedItem, SyncResult
from finguard.services.activity import ActivityMonitor
from finguard.services.provider_client import (
    ACCOUNTS_GET,
    BALANCE_GET,
    INSTITUTION_GET,
    ITEM_GET,
    ITEM_REMOVE,
    LINK_TOKEN_CREATE,
    MAX_PAGE_SIZE,
    PUBLIC_TOKEN_EXCHANGE,
    TRANSACTIONS_GET,
    ExternalApiClient,
)
from finguard.services.rate_limiter import RateLimiter
from finguard.services.security_log import SecurityLog
from finguard.services.usage import Month, UsageTracker
from finguard.services.validation import ENTITY_TYPES, RecordValidator
from finguard.storage.database import KeyValueStore, get_store
from finguard.storage.items import ItemStore
from finguard.utils.privacy import redact_record
from finguard.utils.sanitize import SANITIZERS, sanitize_transaction
from finguard.utils.timestamp import utc_now

logger = logging.getLogger(__name__)
diagnostics = logging.getLogger("finguard.diagnostics")

OWNERSHIP_FIELDS = ("user_id", "userId")

# Operation names used for the per-user activity windows
ENTITY_OPERATIONS = {
    "transaction": "transactions",
    "account": "accounts",
    "user": "auth",
}

# Provider category labels mapped onto the fixed category set (most specific label wins)
PROVIDER_CATEGORY_MAP = {
    "restaurants": "restaurant",
    "food and drink": "restaurant",
    "supermarkets and groceries": "groceries",
    "shops": "shopping",
    "gas stations": "gas",
    "taxi": "transportation",
    "public transportation services": "transportation",
    "airlines and aviation services": "travel",
    "travel": "travel",
    "payroll": "salary",
    "deposit": "deposit",
    "transfer": "transfer",
    "withdrawal": "withdrawal",
    "utilities": "utilities",
    "subscription": "subscription",
    "recreation": "entertainment",
    "entertainment": "entertainment",
    "healthcare": "healthcare",
    "insurance": "insurance",
    "education": "education",
    "charitable giving": "charity",
    "interest earned": "interest",
    "interest": "interest",
    "bank fees": "fee",
}


def owners_of(data: Mapping[str, Any]) -> List[Any]:
    """Every ownership claim on a record; missing, None and empty values claim nothing."""
    return [data[field] for field in OWNERSHIP_FIELDS if data.get(field)]


def map_provider_category(labels: Optional[list]) -> str:
    for label in reversed(labels or []):
        mapped = PROVIDER_CATEGORY_MAP.get(str(label).strip().lower())
        if mapped:
            return mapped
    return "uncategorized"


def provider_transaction_to_record(txn: ProviderTransaction, user_id: str) -> Dict[str, Any]:
    """Map a provider transaction onto a Transaction record (inflows positive)."""
    return {
        "description": txn.merchant_name or txn.name,
        "amount": -txn.amount,
        "date": txn.date,
        "category": map_provider_category(txn.category),
        "user_id": user_id,
        "account_id": txn.account_id,
        "provider_transaction_id": txn.transaction_id,
        "currency": txn.iso_currency_code,
        "pending": txn.pending,
    }


def to_document(record: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v.isoformat() if isinstance(v, datetime) else v for k, v in record.items()}


class Gateway:
    """
    Data-integrity and external-sync gateway.

    Writes go ownership check -> activity monitor -> validator -> sanitizer;
    provider calls go rate limiter -> retrying client -> usage tracker.
    """

    def __init__(
        self,
        store: KeyValueStore,
        adapter: ProviderAdapter,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        if store is None:
            raise ValueError("Gateway requires a key-value store")
        if adapter is None:
            raise ValueError("Gateway requires a provider adapter")

        cfg = settings or default_settings
        self.settings = cfg
        self.store = store
        self.adapter = adapter
        self._now = clock or utc_now

        def millis() -> float:
            return self._now().timestamp() * 1000

        self.validator = RecordValidator(allow_future_dates=cfg.allow_future_dates, clock=self._now)
        self.security_log = SecurityLog(store, clock=self._now)
        self.provider_limiter = RateLimiter(
            store,
            limits=cfg.endpoint_rate_limits,
            default_limit=cfg.default_endpoint_limit,
            window_ms=cfg.rate_window_ms,
            clock=millis,
            sleep=sleep,
            namespace="rate_limit",
        )
        self.operation_limiter = RateLimiter(
            store,
            limits=cfg.operation_rate_limits,
            default_limit=cfg.default_operation_limit,
            window_ms=cfg.rate_window_ms,
            clock=millis,
            sleep=sleep,
            namespace="activity",
        )
        self.client = ExternalApiClient(
            adapter,
            self.provider_limiter,
            max_retries=cfg.max_retries,
            retry_base_delay_ms=cfg.retry_base_delay_ms,
            slot_max_wait_ms=cfg.slot_max_wait_ms,
            slot_poll_interval_ms=cfg.slot_poll_interval_ms,
            sleep=sleep,
        )
        self.usage = UsageTracker(store, monthly_cap=cfg.monthly_transaction_cap, clock=self._now)
        self.items = ItemStore(
            store,
            max_items=cfg.max_items,
            max_accounts_per_item=cfg.max_accounts_per_item,
            clock=self._now,
        )
        self.monitor = ActivityMonitor(
            self.operation_limiter,
            self.security_log,
            suspicious_amount=cfg.suspicious_amount,
            clock=self._now,
        )

    @classmethod
    def from_settings(cls, cfg: Optional[Settings] = None) -> "Gateway":
        cfg = cfg or default_settings
        return cls(
            store=get_store(cfg.database_url),
            adapter=get_provider_adapter(cfg.provider_adapter),
            settings=cfg,
        )

    async def close(self) -> None:
        await self.security_log.drain()
        await self.adapter.aclose()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def validate_and_sanitize(
        self,
        data: Mapping[str, Any],
        entity_type: str,
        actor_id: str,
    ) -> Dict[str, Any]:
        """
        Validate and canonicalize a record before persistence.

        Args:
            data: Plain record (transaction, account or user)
            entity_type: "transaction", "account" or "user"
            actor_id: Identity performing the write

        Returns:
            Sanitized copy of the record, owned by actor_id

        Raises:
            InvalidDataType: Unsupported entity_type
            UnauthorizedError: The record belongs to someone else
            ValidationError: One or more rule violations (all of them listed)
        """
        return await self._validate_and_sanitize(data, entity_type, actor_id, monitor=True)

    async def _validate_and_sanitize(
        self,
        data: Mapping[str, Any],
        entity_type: str,
        actor_id: str,
        monitor: bool,
    ) -> Dict[str, Any]:
        if entity_type not in ENTITY_TYPES:
            raise InvalidDataType(entity_type)
        if not isinstance(data, Mapping):
            raise ValidationError([f"{entity_type.capitalize()} must be an object"])

        # Every alias must name the actor; one foreign claim rejects the write
        foreign = [owner for owner in owners_of(data) if owner != actor_id]
        if foreign:
            self.security_log.emit(actor_id, "unauthorized_access", {
                "type": entity_type,
                "owner_id": foreign[0],
            })
            raise UnauthorizedError(actor_id, foreign[0])

        if monitor:
            await self._check_activity(actor_id, ENTITY_OPERATIONS[entity_type], data)

        violations = self.validator.validate(entity_type, data)
        if violations:
            self.security_log.emit(actor_id, "validation_failed", {
                "type": entity_type,
                "errors": violations,
                "data": redact_record(data),
            })
            raise ValidationError(violations)

        if entity_type == "transaction":
            sanitized = sanitize_transaction(data, now=self._now)
        else:
            sanitized = SANITIZERS[entity_type](data)

        sanitized.pop("userId", None)
        sanitized["user_id"] = actor_id
        return sanitized

    async def _check_activity(self, actor_id: str, operation: str, data: Mapping[str, Any]) -> bool:
        # Flags only; a monitor failure must not decide the write
        try:
            return await self.monitor.is_suspicious(actor_id, operation, data)
        except Exception:
            diagnostics.exception("Activity monitor failed for %s on %s", actor_id, operation)
            return False

    # ------------------------------------------------------------------
    # Provider access
    # ------------------------------------------------------------------

    async def call_provider(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        item_id: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Rate-limited, retrying provider call with usage accounting.

        Raises:
            RateLimitTimeout: No local rate-limit slot opened in time
            ProviderError: Provider rejected the call (after retries for throttling)
        """
        response = await self.client.call_with_retry(endpoint, payload, item_id)
        if actor_id:
            await self.usage.track(actor_id, endpoint)
        return response

    async def create_link_token(self, actor_id: str, client_name: str = "Finguard") -> LinkTokenResponse:
        token = await self.client.create_link_token(actor_id, client_name)
        await self.usage.track(actor_id, LINK_TOKEN_CREATE)
        return token

    async def exchange_public_token(
        self,
        actor_id: str,
        public_token: str,
        institution_id: Optional[str] = None,
    ) -> ExchangeTokenResponse:
        """
        Exchange a public token, link the resulting item and store its accounts.

        An account fetch failure leaves the item linked; its accounts can be
        fetched again later.

        Raises:
            ValidationError: The user already has the maximum number of linked items
            ProviderError: The exchange itself was rejected
        """
        exchanged = await self.client.exchange_public_token(public_token)
        await self.usage.track(actor_id, PUBLIC_TOKEN_EXCHANGE)
        self.items.upsert_item(actor_id, exchanged.item_id, exchanged.access_token, institution_id)

        try:
            accounts = await self.get_accounts(actor_id, exchanged.access_token, exchanged.item_id)
        except ProviderError as e:
            logger.warning("Linked item %s but could not fetch its accounts: %s", exchanged.item_id, e)
        else:
            self.items.upsert_accounts(actor_id, exchanged.item_id, accounts)
        return exchanged

    async def get_accounts(
        self,
        actor_id: str,
        access_token: str,
        item_id: Optional[str] = None,
    ) -> List[ProviderAccount]:
        accounts = await self.client.get_accounts(access_token, item_id)
        await self.usage.track(actor_id, ACCOUNTS_GET)
        return accounts

    async def get_account_balances(
        self,
        actor_id: str,
        access_token: str,
        account_ids: Optional[List[str]] = None,
        item_id: Optional[str] = None,
    ) -> List[ProviderAccount]:
        accounts = await self.client.get_account_balances(access_token, account_ids, item_id)
        await self.usage.track(actor_id, BALANCE_GET)
        return accounts

    async def get_institution(self, actor_id: str, institution_id: str) -> Institution:
        institution = await self.client.get_institution(institution_id)
        await self.usage.track(actor_id, INSTITUTION_GET)
        return institution

    async def get_item_status(
        self,
        actor_id: str,
        access_token: str,
        item_id: Optional[str] = None,
    ) -> ItemStatus:
        status = await self.client.get_item_status(access_token, item_id)
        await self.usage.track(actor_id, ITEM_GET)
        if item_id and self.items.get_item(actor_id, item_id) is not None:
            self.items.update_item(actor_id, item_id, status=status.status)
        return status

    async def remove_item(
        self,
        actor_id: str,
        item_id: str,
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Revoke an item at the provider, then delete its stored accounts and transactions.

        Nothing local is deleted unless the provider accepted the removal.

        Raises:
            ItemNotFound: The item is not linked to actor_id and no access token was given
            ProviderError: The provider rejected the removal
        """
        item = self.items.get_item(actor_id, item_id)
        if item is None and not access_token:
            raise ItemNotFound(actor_id, item_id)

        response = await self.client.remove_item(access_token or item.access_token)
        await self.usage.track(actor_id, ITEM_REMOVE)

        removed = {"accounts": 0, "transactions": 0}
        if item is not None:
            removed = self.items.remove_item(actor_id, item_id)
        return {"item_id": item_id, "removed": True, "request_id": response.request_id, **removed}

    def linked_items(self, actor_id: str, status: Optional[str] = "good") -> List[LinkedItem]:
        return self.items.get_items(actor_id, status)

    def item_accounts(self, actor_id: str, item_id: str) -> List[Dict[str, Any]]:
        if self.items.get_item(actor_id, item_id) is None:
            raise ItemNotFound(actor_id, item_id)
        return self.items.get_accounts(actor_id, item_id)

    async def sync_transactions(
        self,
        actor_id: str,
        access_token: str,
        start_date: str,
        end_date: str,
        item_id: Optional[str] = None,
        page_size: int = MAX_PAGE_SIZE,
    ) -> SyncResult:
        """
        Import one item's transactions over a date range.

        Pages through the provider, maps each transaction onto a Transaction
        record, runs it through validation and sanitization, and upserts the
        accepted ones under ``transactions:<user>:<provider id>``, indexed by
        item. Rejected records are skipped and counted. A linked item gets its
        ``last_sync`` stamped.
        """
        quota = await self.usage.check_free_tier_limits(actor_id)
        if not quota.is_within_limits:
            logger.warning("User %s has exhausted the monthly free-tier transaction cap", actor_id)

        await self._check_activity(actor_id, "sync", {"item_id": item_id})

        result = SyncResult(user_id=actor_id, item_id=item_id, within_free_tier=quota.is_within_limits)
        offset = 0
        while True:
            payload = ExternalApiClient.transactions_payload(
                access_token, start_date, end_date, count=page_size, offset=offset,
            )
            response = await self.call_provider(TRANSACTIONS_GET, payload, item_id, actor_id=actor_id)
            page = TransactionsPage(**response)
            result.total_transactions = page.total_transactions

            for txn in page.transactions:
                result.fetched += 1
                record = provider_transaction_to_record(txn, actor_id)
                try:
                    clean = await self._validate_and_sanitize(record, "transaction", actor_id, monitor=False)
                except ValidationError as e:
                    result.skipped += 1
                    logger.info("Skipping provider transaction %s: %s", txn.transaction_id, e)
                    continue
                self.items.upsert_transaction(actor_id, item_id, txn.transaction_id, to_document(clean))
                result.stored += 1

            offset += len(page.transactions)
            if not page.transactions or offset >= page.total_transactions:
                break

        if item_id and self.items.get_item(actor_id, item_id) is not None:
            self.items.update_item(actor_id, item_id, last_sync=self._now())

        logger.info(
            "Synced item %s for %s: fetched=%d stored=%d skipped=%d",
            item_id, actor_id, result.fetched, result.stored, result.skipped,
        )
        return result

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    async def monthly_usage(self, user_id: str, month: Month = None) -> Dict[str, int]:
        return await self.usage.monthly_usage(user_id, month)

    async def free_tier_status(self, user_id: str) -> FreeTierStatus:
        return await self.usage.check_free_tier_limits(user_id)
