from .provider import (
    LinkTokenResponse,
    ExchangeTokenResponse,
    AccountBalances,
    ProviderAccount,
    ProviderTransaction,
    TransactionsPage,
    Institution,
    ItemStatus,
    RemoveItemResponse,
)
from .records import UsageRecord, SecurityEvent, FreeTierStatus, SyncResult, LinkedItem

__all__ = [
    "LinkTokenResponse",
    "ExchangeTokenResponse",
    "AccountBalances",
    "ProviderAccount",
    "ProviderTransaction",
    "TransactionsPage",
    "Institution",
    "ItemStatus",
    "RemoveItemResponse",
    "UsageRecord",
    "SecurityEvent",
    "FreeTierStatus",
    "SyncResult",
    "LinkedItem",
]
