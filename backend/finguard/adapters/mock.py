"""Mock provider adapter for running without network access."""
from collections import defaultdict, deque
from datetime import date, datetime, timedelta, timezone
from typing import Any, Deque, Dict, List, Optional, Tuple

from finguard.adapters.base import ProviderAdapter
from finguard.errors import ProviderError

# Provider category hierarchies cycled through by the generated transactions.
SAMPLE_CATEGORIES = [
    ["Food and Drink", "Restaurants"],
    ["Shops", "Supermarkets and Groceries"],
    ["Travel", "Taxi"],
    ["Transfer", "Payroll"],
    ["Service", "Utilities"],
    ["Recreation", "Gyms and Fitness Centers"],
]

SAMPLE_MERCHANTS = ["Starbucks", "Whole Foods", "Uber", "ACME Payroll", "City Power", "Gold's Gym"]


class MockProviderAdapter(ProviderAdapter):
    """
    Deterministic sandbox responses.

    Failures can be queued per endpoint with ``fail_next``; every request is
    kept in ``calls`` so tests can assert on what was sent.
    """

    def __init__(self, name: str = "mock", **kwargs):
        super().__init__(name, **kwargs)
        self.total_transactions: int = kwargs.get("total_transactions", 25)
        self.anchor: date = kwargs.get("anchor") or datetime.now(timezone.utc).date()
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self._failures: Dict[str, Deque[ProviderError]] = defaultdict(deque)
        self._overrides: Dict[str, Dict[str, Any]] = {}

    def fail_next(self, endpoint: str, error: ProviderError, times: int = 1) -> None:
        for _ in range(times):
            self._failures[endpoint].append(error)

    def respond_with(self, endpoint: str, body: Dict[str, Any]) -> None:
        self._overrides[endpoint] = body

    def calls_to(self, endpoint: str) -> int:
        return sum(1 for called, _ in self.calls if called == endpoint)

    async def request(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append((endpoint, dict(payload)))

        if self._failures[endpoint]:
            raise self._failures[endpoint].popleft()
        if endpoint in self._overrides:
            return dict(self._overrides[endpoint])

        handler = self.HANDLERS.get(endpoint)
        if handler is None:
            raise ProviderError(
                error_type="INVALID_REQUEST",
                error_code="UNKNOWN_ENDPOINT",
                error_message=f"Mock provider has no endpoint {endpoint}",
                status_code=404,
            )
        return handler(self, payload)

    def _request_id(self) -> str:
        return f"mock-req-{len(self.calls):04d}"

    def _link_token(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        user_id = (payload.get("user") or {}).get("client_user_id", "anonymous")
        return {
            "link_token": f"link-sandbox-{user_id}",
            "expiration": (datetime.now(timezone.utc) + timedelta(hours=4)).isoformat(),
            "request_id": self._request_id(),
        }

    def _exchange(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        public_token = payload.get("public_token", "")
        suffix = public_token.rsplit("-", 1)[-1] or "item"
        return {
            "access_token": f"access-sandbox-{suffix}",
            "item_id": f"item-{suffix}",
            "request_id": self._request_id(),
        }

    def _accounts(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        accounts = [
            {
                "account_id": "acc-checking",
                "name": "Plaid Checking",
                "official_name": "Plaid Gold Standard 0% Interest Checking",
                "mask": "0000",
                "type": "depository",
                "subtype": "checking",
                "balances": {"current": 110.0, "available": 100.0, "iso_currency_code": "USD"},
            },
            {
                "account_id": "acc-savings",
                "name": "Plaid Saving",
                "mask": "1111",
                "type": "depository",
                "subtype": "savings",
                "balances": {"current": 210.0, "available": 200.0, "iso_currency_code": "USD"},
            },
        ]
        wanted = payload.get("account_ids")
        if wanted:
            accounts = [a for a in accounts if a["account_id"] in wanted]
        return {"accounts": accounts, "item": {"item_id": "item-sandbox"}, "request_id": self._request_id()}

    def _transactions(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        count = payload.get("count", 100)
        offset = payload.get("offset", 0)
        end = min(offset + count, self.total_transactions)
        transactions = []
        for i in range(offset, end):
            is_payroll = i % len(SAMPLE_CATEGORIES) == 3
            transactions.append({
                "transaction_id": f"txn-{i:05d}",
                "account_id": "acc-checking",
                # Provider convention: positive = money leaving the account
                "amount": -2500.0 if is_payroll else round(5.25 + i * 3.5, 2),
                "date": (self.anchor - timedelta(days=i % 28)).isoformat(),
                "name": SAMPLE_MERCHANTS[i % len(SAMPLE_MERCHANTS)].upper(),
                "merchant_name": SAMPLE_MERCHANTS[i % len(SAMPLE_MERCHANTS)],
                "iso_currency_code": "USD",
                "pending": False,
                "category": SAMPLE_CATEGORIES[i % len(SAMPLE_CATEGORIES)],
                "payment_channel": "in store",
            })
        return {
            "transactions": transactions,
            "total_transactions": self.total_transactions,
            "request_id": self._request_id(),
        }

    def _institution(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        institution_id = payload.get("institution_id", "ins_109508")
        return {
            "institution": {
                "institution_id": institution_id,
                "name": "First Platypus Bank",
                "products": ["transactions", "auth"],
                "country_codes": payload.get("country_codes", ["US"]),
                "url": "https://www.plaid.com",
            },
            "request_id": self._request_id(),
        }

    def _item_remove(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"request_id": self._request_id()}

    def _item_get(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "item": {"item_id": "item-sandbox", "institution_id": "ins_109508", "error": None},
            "request_id": self._request_id(),
        }

    HANDLERS = {
        "/link/token/create": _link_token,
        "/item/public_token/exchange": _exchange,
        "/accounts/get": _accounts,
        "/accounts/balance/get": _accounts,
        "/transactions/get": _transactions,
        "/institutions/get_by_id": _institution,
        "/item/remove": _item_remove,
        "/item/get": _item_get,
    }


def rate_limit_error(request_id: Optional[str] = None) -> ProviderError:
    """Provider-side throttling error as the sandbox reports it."""
    return ProviderError(
        error_type="RATE_LIMIT_EXCEEDED",
        error_code="RATE_LIMIT_EXCEEDED",
        error_message="rate limit exceeded for this item",
        display_message=None,
        request_id=request_id,
        status_code=429,
    )
