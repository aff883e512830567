"""
Result type for operations that talk to the outside world.

Every commerce, notifier and ledger call returns a Result instead of raising.
Callers branch on the error kind rather than on log messages.

Design decisions:
- Frozen dataclass, mirroring how send outcomes are captured elsewhere
- Error kinds are a closed enum so routing code can switch on them
- A Result may be ok and still carry a reason (e.g. a partial response)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Categories of failure a reconciliation step can report."""
    VALIDATION = "validation"                  # Missing required field on the event
    LOOKUP_NOT_FOUND = "lookup_not_found"      # Order unresolvable in the commerce platform
    EXTERNAL_API = "external_api"              # Non-success response or transport failure
    PARTIAL_RESPONSE = "partial_response"      # Response carried both data and errors
    NOT_CONFIGURED = "not_configured"          # Account or template missing from config
    UNSUPPORTED_STATUS = "unsupported_status"  # Status class has no handler


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a single external operation.

    `error` is None on success. `reason` is a human-readable note for logs
    and webhook responses.
    """
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    reason: str = ""
    warning: Optional[ErrorKind] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc), compare=False)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None, reason: str = "") -> "Result":
        return cls(value=value, reason=reason)

    @classmethod
    def partial(cls, value: Any, reason: str) -> "Result":
        """Usable value that came with error annotations."""
        return cls(value=value, reason=reason, warning=ErrorKind.PARTIAL_RESPONSE)

    @classmethod
    def failure(cls, error: ErrorKind, reason: str) -> "Result":
        return cls(error=error, reason=reason)

    def __str__(self) -> str:
        status = "ok" if self.ok else f"failed[{self.error.value}]"
        return f"{status}: {self.reason}" if self.reason else status
