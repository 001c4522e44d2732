"""
Credential Models

Result type for credential lookups. The secret never appears in repr/str.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class CredentialStatus(Enum):
    """Outcome of a credential lookup."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class CredentialLookupResult:
    """Found(secret) | NotFound | Unavailable(reason)."""

    status: CredentialStatus
    secret: Optional[str] = field(default=None, repr=False)
    reason: Optional[str] = None

    @classmethod
    def found(cls, secret: str) -> "CredentialLookupResult":
        return cls(CredentialStatus.FOUND, secret=secret)

    @classmethod
    def not_found(cls) -> "CredentialLookupResult":
        return cls(CredentialStatus.NOT_FOUND)

    @classmethod
    def unavailable(cls, reason: str) -> "CredentialLookupResult":
        return cls(CredentialStatus.UNAVAILABLE, reason=reason)

    @property
    def is_found(self) -> bool:
        return self.status == CredentialStatus.FOUND

    @property
    def is_not_found(self) -> bool:
        return self.status == CredentialStatus.NOT_FOUND

    @property
    def is_unavailable(self) -> bool:
        return self.status == CredentialStatus.UNAVAILABLE

    def __repr__(self) -> str:
        if self.is_found:
            return "CredentialLookupResult.Found(<redacted>)"
        if self.is_unavailable:
            return f"CredentialLookupResult.Unavailable({self.reason})"
        return "CredentialLookupResult.NotFound"

    __str__ = __repr__
