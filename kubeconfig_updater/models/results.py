"""
Result Models

Dataclass models for job outcomes, persisted run state and command outputs.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any


class RunStatus(Enum):
    """Last recorded outcome for a server (persisted by name)."""

    FETCHED = "Fetched"
    SKIPPED = "Skipped"
    NO_CREDENTIAL = "NoCredential"
    AUTH_REJECTED = "AuthRejected"
    FAILED = "Failed"


class OutcomeKind(Enum):
    FETCHED = "fetched"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason(Enum):
    """Why a server job stopped without fetching."""

    CERT_STILL_VALID = "cert_still_valid"
    KEYRING_UNAVAILABLE = "keyring_unavailable"


class FailureKind(Enum):
    """Classification of a failed server job."""

    AUTH_REJECTED = "auth_rejected"
    FAILED = "failed"


class CertState(Enum):
    VALID = "valid"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CertStatus:
    """Validity of a locally cached client certificate."""

    state: CertState
    expires_at: Optional[datetime] = None

    @classmethod
    def valid(cls, expires_at: datetime) -> "CertStatus":
        return cls(CertState.VALID, expires_at)

    @classmethod
    def expired(cls, expires_at: datetime) -> "CertStatus":
        return cls(CertState.EXPIRED, expires_at)

    @classmethod
    def unknown(cls) -> "CertStatus":
        return cls(CertState.UNKNOWN)

    @property
    def is_valid(self) -> bool:
        return self.state == CertState.VALID

    @property
    def needs_fetch(self) -> bool:
        """Unknown is treated exactly like Expired."""
        return self.state != CertState.VALID


@dataclass
class ServerRunState:
    """Persisted state entry for one server."""

    status: RunStatus
    last_updated: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": self.status.value,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerRunState":
        """Create from dictionary."""
        last_updated = None
        raw = data.get("last_updated")
        if raw:
            try:
                last_updated = datetime.fromisoformat(raw)
            except ValueError:
                last_updated = None
        return cls(
            status=RunStatus(data["status"]),
            last_updated=last_updated,
            error=data.get("error"),
        )

    def __repr__(self) -> str:
        return f"ServerRunState(status={self.status.value}, error={self.error is not None})"


@dataclass(frozen=True)
class ServerOutcome:
    """Terminal outcome of one server job."""

    server_name: str
    kind: OutcomeKind
    skip_reason: Optional[SkipReason] = None
    failure: Optional[FailureKind] = None
    message: Optional[str] = None
    cert_expiry: Optional[datetime] = None

    @classmethod
    def fetched(cls, server_name: str, cert_expiry: Optional[datetime] = None) -> "ServerOutcome":
        return cls(server_name, OutcomeKind.FETCHED, cert_expiry=cert_expiry)

    @classmethod
    def skipped(
        cls,
        server_name: str,
        reason: SkipReason,
        message: Optional[str] = None,
        cert_expiry: Optional[datetime] = None,
    ) -> "ServerOutcome":
        return cls(
            server_name,
            OutcomeKind.SKIPPED,
            skip_reason=reason,
            message=message,
            cert_expiry=cert_expiry,
        )

    @classmethod
    def failed(cls, server_name: str, failure: FailureKind, message: str) -> "ServerOutcome":
        return cls(server_name, OutcomeKind.FAILED, failure=failure, message=message)

    @property
    def is_fetched(self) -> bool:
        return self.kind == OutcomeKind.FETCHED

    @property
    def is_skipped(self) -> bool:
        return self.kind == OutcomeKind.SKIPPED

    @property
    def is_failed(self) -> bool:
        return self.kind == OutcomeKind.FAILED

    @property
    def run_status(self) -> RunStatus:
        """The persisted status this outcome maps to."""
        if self.kind == OutcomeKind.FETCHED:
            return RunStatus.FETCHED
        if self.kind == OutcomeKind.SKIPPED:
            if self.skip_reason == SkipReason.KEYRING_UNAVAILABLE:
                return RunStatus.NO_CREDENTIAL
            return RunStatus.SKIPPED
        if self.failure == FailureKind.AUTH_REJECTED:
            return RunStatus.AUTH_REJECTED
        return RunStatus.FAILED

    def to_run_state(self, now: Optional[datetime] = None) -> ServerRunState:
        return ServerRunState(
            status=self.run_status,
            last_updated=now or datetime.now(timezone.utc),
            error=self.message if self.is_failed else None,
        )

    def __repr__(self) -> str:
        return f"ServerOutcome(server={self.server_name}, status={self.run_status.value})"


@dataclass
class RunSummary:
    """Counts of outcomes across one run."""

    fetched: int = 0
    skipped_cert_valid: int = 0
    skipped_no_credential: int = 0
    failed: int = 0

    def record(self, outcome: ServerOutcome) -> None:
        if outcome.is_fetched:
            self.fetched += 1
        elif outcome.is_failed:
            self.failed += 1
        elif outcome.skip_reason == SkipReason.KEYRING_UNAVAILABLE:
            self.skipped_no_credential += 1
        else:
            self.skipped_cert_valid += 1

    @property
    def total(self) -> int:
        return self.fetched + self.skipped_cert_valid + self.skipped_no_credential + self.failed

    @property
    def is_notable(self) -> bool:
        """False when every server was skipped for a still-valid certificate."""
        return self.fetched > 0 or self.failed > 0 or self.skipped_no_credential > 0

    def format(self) -> str:
        return (
            f"Done. fetched={self.fetched} skipped_cert_valid={self.skipped_cert_valid} "
            f"skipped_no_cred={self.skipped_no_credential} failed={self.failed}"
        )


@dataclass
class SSHResult:
    """Result of an SSH command execution."""

    returncode: int
    stdout: bytes = b""
    stderr: str = ""
    host: str = ""
    command: str = ""
    duration_seconds: float = 0.0

    @property
    def is_success(self) -> bool:
        """Check if SSH command succeeded."""
        return self.returncode == 0

    @property
    def is_failure(self) -> bool:
        """Check if SSH command failed."""
        return self.returncode != 0

    def __repr__(self) -> str:
        return f"SSHResult(host={self.host}, returncode={self.returncode}, duration={self.duration_seconds:.2f}s)"


@dataclass
class ProbeResult:
    """Result of a read-only remote certificate probe."""

    server_name: str
    cert_expiry: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.error is None
