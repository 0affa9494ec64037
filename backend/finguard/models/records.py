"""Usage, audit and reporting models."""
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class UsageRecord(BaseModel):
    """One outbound provider call (append-only)."""

    user_id: str
    endpoint: str
    timestamp: datetime


class SecurityEvent(BaseModel):
    """Audit log entry (write-once, best-effort)."""

    user_id: Optional[str] = None
    event_type: str = Field(..., description="validation_failed, unauthorized_access, suspicious_activity")
    timestamp: datetime
    details: Dict[str, Any] = Field(default_factory=dict)


class FreeTierStatus(BaseModel):
    """Month-to-date position against the free-tier transaction cap."""

    transactions_remaining: int = Field(..., ge=0)
    is_within_limits: bool


class SyncResult(BaseModel):
    """Outcome of importing one item's transactions."""

    user_id: str
    item_id: Optional[str] = None
    fetched: int = 0
    stored: int = 0
    skipped: int = 0
    total_transactions: int = 0
    within_free_tier: bool = True


class LinkedItem(BaseModel):
    """One provider connection owned by a user (access token held server-side)."""

    user_id: str
    item_id: str
    access_token: str
    institution_id: Optional[str] = None
    status: str = "good"
    last_sync: Optional[datetime] = None
