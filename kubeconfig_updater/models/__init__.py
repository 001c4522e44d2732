"""
kube-config-updater Domain Models

Clean dataclass-based models for type-safe data handling.
"""

from .config import (
    ServerSpec,
    FleetConfig,
)
from .credentials import (
    CredentialStatus,
    CredentialLookupResult,
)
from .kubeconfig import (
    ClusterEntry,
    ContextEntry,
    UserEntry,
    KubeDocument,
)
from .results import (
    RunStatus,
    OutcomeKind,
    SkipReason,
    FailureKind,
    CertState,
    CertStatus,
    ServerRunState,
    ServerOutcome,
    RunSummary,
    SSHResult,
    ProbeResult,
)
from .ssh import (
    SSHTarget,
)

__all__ = [
    # Config
    "ServerSpec",
    "FleetConfig",
    # Credentials
    "CredentialStatus",
    "CredentialLookupResult",
    # Kubeconfig
    "ClusterEntry",
    "ContextEntry",
    "UserEntry",
    "KubeDocument",
    # Results
    "RunStatus",
    "OutcomeKind",
    "SkipReason",
    "FailureKind",
    "CertState",
    "CertStatus",
    "ServerRunState",
    "ServerOutcome",
    "RunSummary",
    "SSHResult",
    "ProbeResult",
    # SSH
    "SSHTarget",
]
