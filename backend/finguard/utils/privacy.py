"""Privacy utilities for redacting sensitive data in audit logs."""
import re
from typing import Any, Dict, Mapping

# Free-text fields that may carry merchant names, notes or personal data.
REDACTED_FIELDS = (
    "description",
    "note",
    "name",
    "email",
    "account_number",
    "accountNumber",
    "institution",
)


def obfuscate_text(text: str) -> str:
    """
    Obfuscate free text for logging.
    Replaces alphanumeric characters with asterisks, preserves structure.
    """
    return re.sub(r"[A-Za-z0-9]", "*", text)


def redact_record(data: Any) -> Dict[str, Any]:
    """
    Redact a record before it goes into a security event.
    Free-text fields are obfuscated; amounts, categories and dates stay
    readable so the event can still be triaged.
    """
    if not isinstance(data, Mapping):
        return {"value": repr(data)}

    redacted: Dict[str, Any] = {}
    for key, value in data.items():
        if key in REDACTED_FIELDS and isinstance(value, str):
            redacted[key] = obfuscate_text(value)
        elif key == "tags" and isinstance(value, (list, tuple)):
            redacted[key] = [obfuscate_text(str(tag)) for tag in value]
        elif isinstance(value, (str, int, float, bool)) or value is None:
            redacted[key] = value
        else:
            redacted[key] = str(value)
    return redacted
