from .privacy import obfuscate_text, redact_record
from .sanitize import (
    sanitize_text,
    normalize_category,
    sanitize_transaction,
    sanitize_account,
    sanitize_user,
)
from .timestamp import (
    parse_timestamp,
    normalize_timestamp,
    normalize_timestamp_or_now,
    NormalizationFailure,
)

__all__ = [
    "obfuscate_text",
    "redact_record",
    "sanitize_text",
    "normalize_category",
    "sanitize_transaction",
    "sanitize_account",
    "sanitize_user",
    "parse_timestamp",
    "normalize_timestamp",
    "normalize_timestamp_or_now",
    "NormalizationFailure",
]
