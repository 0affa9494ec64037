"""Error taxonomy for the gateway."""
from typing import Any, Dict, List, Optional


class GatewayError(Exception):
    """Base class for errors raised by the gateway."""


class ValidationError(GatewayError):
    """Aggregated validation failure; recoverable by correcting the input."""

    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        super().__init__(f"Validation failed: {', '.join(self.violations)}")


class UnauthorizedError(GatewayError):
    """The record's ownership field does not match the acting identity."""

    def __init__(self, actor_id: str, owner_id: Any = None):
        self.actor_id = actor_id
        self.owner_id = owner_id
        super().__init__("Unauthorized access to user data")


class InvalidDataType(GatewayError):
    """Unsupported entity type (programmer error, never retried)."""

    def __init__(self, entity_type: Any):
        self.entity_type = entity_type
        super().__init__(f"Invalid data type: {entity_type!r}")


class ItemNotFound(GatewayError):
    """No linked item with this id belongs to the acting user."""

    def __init__(self, user_id: Any, item_id: str):
        self.user_id = user_id
        self.item_id = item_id
        super().__init__(f"Unknown item: {item_id}")


class RateLimitTimeout(GatewayError):
    """No rate-limit slot opened up within the allowed wait."""

    def __init__(self, endpoint: str, resource_id: Optional[str], waited_ms: float):
        self.endpoint = endpoint
        self.resource_id = resource_id
        self.waited_ms = waited_ms
        super().__init__(
            f"Rate limit exceeded for {endpoint} - maximum wait time reached ({int(waited_ms)} ms)"
        )


# Codes the provider uses to signal that the caller is being throttled.
RATE_LIMIT_CODES = frozenset({"RATE_LIMIT_EXCEEDED", "RATE_LIMIT"})


class ProviderError(GatewayError):
    """Error returned by (or on the way to) the account-aggregation provider."""

    def __init__(
        self,
        error_type: str,
        error_code: str,
        error_message: str = "",
        display_message: Optional[str] = None,
        request_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.error_type = error_type
        self.error_code = error_code
        self.error_message = error_message
        self.display_message = display_message
        self.request_id = request_id
        self.status_code = status_code
        super().__init__(error_message or "Provider API error")

    @classmethod
    def from_response(cls, body: Any, status_code: Optional[int] = None) -> "ProviderError":
        """Build an error from a provider error body."""
        if not isinstance(body, dict):
            body = {"error_message": str(body) if body else ""}
        return cls(
            error_type=body.get("error_type") or "API_ERROR",
            error_code=body.get("error_code") or "UNKNOWN_ERROR",
            error_message=body.get("error_message") or "Provider API error",
            display_message=body.get("display_message"),
            request_id=body.get("request_id"),
            status_code=status_code,
        )

    @classmethod
    def network(cls, exc: Exception) -> "ProviderError":
        """Synthesize an error for a transport failure."""
        return cls(
            error_type="API_ERROR",
            error_code="NETWORK_ERROR",
            error_message=str(exc) or exc.__class__.__name__,
        )

    @property
    def is_rate_limited(self) -> bool:
        return self.error_code in RATE_LIMIT_CODES or self.error_type in RATE_LIMIT_CODES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.error_type,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "display_message": self.display_message,
            "request_id": self.request_id,
        }
