"""Account-aggregation provider response models."""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class LinkTokenResponse(BaseModel):
    """Short-lived token used to open the provider's account-linking flow."""

    link_token: str = Field(..., description="Link token")
    expiration: Optional[str] = Field(None, description="Expiry timestamp (ISO8601)")
    request_id: Optional[str] = Field(None, description="Provider request ID")


class ExchangeTokenResponse(BaseModel):
    """Durable credentials for one linked item."""

    access_token: str = Field(..., description="Item access token")
    item_id: str = Field(..., description="Item identifier")
    request_id: Optional[str] = Field(None, description="Provider request ID")


class AccountBalances(BaseModel):
    """Balance snapshot for an account."""

    current: Optional[float] = Field(None, description="Current balance")
    available: Optional[float] = Field(None, description="Available balance")
    limit: Optional[float] = Field(None, description="Credit limit")
    iso_currency_code: Optional[str] = Field(None, description="ISO-4217 currency code")
    unofficial_currency_code: Optional[str] = Field(None, description="Non-ISO currency code")


class ProviderAccount(BaseModel):
    """Account as reported by the provider."""

    account_id: str = Field(..., description="Account identifier")
    name: str = Field(..., description="Account name")
    official_name: Optional[str] = Field(None, description="Institution's name for the account")
    mask: Optional[str] = Field(None, description="Last digits of the account number")
    type: str = Field(..., description="Account type (depository, credit, loan, investment)")
    subtype: Optional[str] = Field(None, description="Account subtype (checking, savings, ...)")
    balances: AccountBalances = Field(default_factory=AccountBalances, description="Balances")


class ProviderTransaction(BaseModel):
    """Transaction as reported by the provider (positive amount = money out)."""

    transaction_id: str = Field(..., description="Transaction identifier")
    account_id: str = Field(..., description="Account identifier")
    amount: float = Field(..., description="Amount; positive values are outflows")
    date: str = Field(..., description="Posting date (YYYY-MM-DD)")
    name: str = Field(..., description="Raw transaction name")
    merchant_name: Optional[str] = Field(None, description="Cleaned merchant name")
    iso_currency_code: Optional[str] = Field(None, description="ISO-4217 currency code")
    pending: bool = Field(default=False, description="Whether the transaction is pending")
    category: Optional[List[str]] = Field(None, description="Provider category hierarchy")
    payment_channel: Optional[str] = Field(None, description="online, in store, other")


class TransactionsPage(BaseModel):
    """One page of transactions over a date range."""

    transactions: List[ProviderTransaction] = Field(default_factory=list)
    total_transactions: int = Field(default=0, ge=0, description="Total transactions in range")
    request_id: Optional[str] = Field(None, description="Provider request ID")


class Institution(BaseModel):
    """Institution metadata."""

    institution_id: str
    name: str
    products: List[str] = Field(default_factory=list)
    country_codes: List[str] = Field(default_factory=list)
    url: Optional[str] = None


class ItemStatus(BaseModel):
    """Health of one linked item."""

    item_id: str
    institution_id: Optional[str] = None
    status: str = Field(default="good", description="'good', 'pending' or 'bad'")
    error: Optional[Dict[str, Any]] = Field(None, description="Provider error attached to the item")


class RemoveItemResponse(BaseModel):
    """Acknowledgement of an item removal."""

    removed: bool = True
    request_id: Optional[str] = None
