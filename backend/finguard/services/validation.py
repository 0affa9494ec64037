"""Field-level validation rules for transactions, accounts and users."""
import logging
import math
import re
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional

from dateutil.relativedelta import relativedelta

from finguard.errors import InvalidDataType
from finguard.utils.sanitize import ACCOUNT_TYPES, VALID_CATEGORIES
from finguard.utils.timestamp import NormalizationFailure, normalize_timestamp, utc_now

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 500
MAX_NAME_LENGTH = 100
MAX_AMOUNT = 1_000_000
MAX_AGE_YEARS = 10

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ENTITY_TYPES = ("transaction", "account", "user")


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


class RecordValidator:
    """
    Validates plain records before they are sanitized and persisted.

    Every rule runs on every call; the result is the full list of violation
    messages (empty when the record is valid). Bad data never raises.
    """

    def __init__(
        self,
        allow_future_dates: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.allow_future_dates = allow_future_dates
        self._now = clock or utc_now

    def validate_transaction(self, transaction: Mapping[str, Any]) -> List[str]:
        errors: List[str] = []

        description = transaction.get("description")
        if _is_blank(description):
            errors.append("Description is required")
        elif len(description) > MAX_DESCRIPTION_LENGTH:
            errors.append(f"Description too long (max {MAX_DESCRIPTION_LENGTH} characters)")

        amount = transaction.get("amount")
        if not _is_number(amount) or amount == 0:
            errors.append("Amount must be a non-zero number")
        elif abs(amount) > MAX_AMOUNT:
            errors.append("Amount cannot exceed $1,000,000")

        errors.extend(self._date_violations(transaction.get("date")))

        category = transaction.get("category")
        if category and (not isinstance(category, str) or category.strip().lower() not in VALID_CATEGORIES):
            # Coerced to "other" by the sanitizer, not rejected here
            logger.warning('Unknown category "%s" - will be converted to "other"', category)

        return errors

    def _date_violations(self, value: Any) -> List[str]:
        if value is None or value == "":
            return ["Valid date is required"]

        when = normalize_timestamp(value)
        if isinstance(when, NormalizationFailure):
            return ["Valid date is required"]

        errors = []
        now = self._now()
        if when > now and not self.allow_future_dates:
            errors.append("Cannot create future transactions")
        if when < now - relativedelta(years=MAX_AGE_YEARS):
            errors.append(f"Cannot create transactions older than {MAX_AGE_YEARS} years")
        return errors

    def validate_account(self, account: Mapping[str, Any]) -> List[str]:
        errors: List[str] = []

        name = account.get("name")
        if _is_blank(name):
            errors.append("Account name is required")
        elif len(name) > MAX_NAME_LENGTH:
            errors.append(f"Account name too long (max {MAX_NAME_LENGTH} characters)")

        account_type = account.get("type")
        if not isinstance(account_type, str) or account_type.strip().lower() not in ACCOUNT_TYPES:
            errors.append("Invalid account type")

        balance = account.get("balance")
        if not _is_number(balance):
            errors.append("Balance must be a number")
        elif abs(balance) > MAX_AMOUNT:
            errors.append("Balance must be between -$1,000,000 and $1,000,000")

        return errors

    def validate_user(self, user: Mapping[str, Any]) -> List[str]:
        errors: List[str] = []

        email = user.get("email")
        if _is_blank(email):
            errors.append("Email is required")
        elif not EMAIL_PATTERN.match(email.strip()):
            errors.append("Invalid email format")

        name = user.get("name")
        if _is_blank(name):
            errors.append("Name is required")
        elif len(name) > MAX_NAME_LENGTH:
            errors.append(f"Name too long (max {MAX_NAME_LENGTH} characters)")

        return errors

    def validate(self, entity_type: str, data: Mapping[str, Any]) -> List[str]:
        """
        Validate a record of the given entity type.

        Raises:
            InvalidDataType: entity_type is not transaction, account or user
        """
        if entity_type == "transaction":
            return self.validate_transaction(data)
        if entity_type == "account":
            return self.validate_account(data)
        if entity_type == "user":
            return self.validate_user(data)
        raise InvalidDataType(entity_type)
