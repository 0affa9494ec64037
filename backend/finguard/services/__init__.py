from .validation import RecordValidator
from .rate_limiter import RateLimiter
from .provider_client import ExternalApiClient
from .usage import UsageTracker
from .security_log import SecurityLog
from .activity import ActivityMonitor

__all__ = [
    "RecordValidator",
    "RateLimiter",
    "ExternalApiClient",
    "UsageTracker",
    "SecurityLog",
    "ActivityMonitor",
]
