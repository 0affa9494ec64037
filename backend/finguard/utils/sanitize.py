"""Free-text sanitization and per-entity canonicalization."""
import logging
import re
from typing import Any, Callable, Dict, Mapping, Optional
from datetime import datetime

from finguard.utils.timestamp import normalize_timestamp_or_now

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 1000
DEFAULT_CATEGORY = "other"

VALID_CATEGORIES = frozenset({
    "salary",
    "income",
    "deposit",
    "refund",
    "dividend",
    "shopping",
    "groceries",
    "restaurant",
    "transportation",
    "gas",
    "utilities",
    "entertainment",
    "healthcare",
    "insurance",
    "education",
    "travel",
    "subscription",
    "gift",
    "charity",
    "transfer",
    "withdrawal",
    "fee",
    "interest",
    "other",
    "uncategorized",
})

ACCOUNT_TYPES = frozenset({"checking", "savings", "credit", "investment", "loan"})

_UNSAFE_PATTERNS = (
    re.compile(r"[<>]"),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+=", re.IGNORECASE),
)


def sanitize_text(value: Any) -> Any:
    """
    Strip markup/script patterns from free text.

    Removal is repeated until nothing matches, so fragments that reassemble
    into a pattern ("javajavascript:script:") are removed too and the result
    is stable under a second pass. Non-string input is returned unchanged.
    """
    if not isinstance(value, str):
        return value

    text = value.strip()
    while True:
        cleaned = text
        for pattern in _UNSAFE_PATTERNS:
            cleaned = pattern.sub("", cleaned)
        cleaned = cleaned.strip()
        if cleaned == text:
            break
        text = cleaned

    return text[:MAX_TEXT_LENGTH].rstrip()


def normalize_category(value: Any) -> str:
    """Lower-case and trim a category; anything outside the fixed set becomes 'other'."""
    if isinstance(value, str):
        candidate = value.strip().lower()
        if candidate in VALID_CATEGORIES:
            return candidate
    logger.warning('Unknown category "%s" - converted to "%s"', value, DEFAULT_CATEGORY)
    return DEFAULT_CATEGORY


def _sanitize_optional(record: Dict[str, Any], key: str) -> None:
    value = record.get(key)
    if value:
        record[key] = sanitize_text(value)
    else:
        record.pop(key, None)


def sanitize_transaction(
    transaction: Mapping[str, Any],
    now: Optional[Callable[[], datetime]] = None,
) -> Dict[str, Any]:
    """Return a canonical copy of a transaction record."""
    record = dict(transaction)

    if record.get("date") is not None:
        record["date"] = normalize_timestamp_or_now(record["date"], now=now)

    record["category"] = normalize_category(record.get("category"))
    record["description"] = sanitize_text(record.get("description"))
    _sanitize_optional(record, "note")

    tags = record.get("tags")
    if tags:
        record["tags"] = [sanitize_text(tag) for tag in tags]
    else:
        record.pop("tags", None)

    return record


def sanitize_account(account: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a canonical copy of an account record."""
    record = dict(account)
    record["name"] = sanitize_text(record.get("name"))
    if isinstance(record.get("type"), str):
        record["type"] = record["type"].strip().lower()
    _sanitize_optional(record, "institution")
    _sanitize_optional(record, "account_number")
    _sanitize_optional(record, "accountNumber")
    return record


def sanitize_user(user: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a canonical copy of a user record."""
    record = dict(user)
    record["name"] = sanitize_text(record.get("name"))
    record["email"] = sanitize_text(record.get("email"))
    return record


SANITIZERS = {
    "transaction": sanitize_transaction,
    "account": sanitize_account,
    "user": sanitize_user,
}
