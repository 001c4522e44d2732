"""
kube-config-updater Services Layer

Business logic shared by the CLI commands.
"""

from .config_service import ConfigService
from .credential_service import (
    CredentialResolver,
    FileKeyring,
    KeyringBackend,
    SystemKeyring,
    is_backend_unavailable_error,
)
from .job_runner import ServerJobRunner, classify_failure, friendly_error
from .kubeconfig_service import (
    KubeconfigTransformer,
    check_local_expiry,
    parse_expiry_from_bytes,
)
from .merge_service import KubeconfigMerger
from .ssh_service import SSHService
from .state_service import RunStateStore

__all__ = [
    "ConfigService",
    "CredentialResolver",
    "FileKeyring",
    "KeyringBackend",
    "SystemKeyring",
    "is_backend_unavailable_error",
    "ServerJobRunner",
    "classify_failure",
    "friendly_error",
    "KubeconfigTransformer",
    "check_local_expiry",
    "parse_expiry_from_bytes",
    "KubeconfigMerger",
    "SSHService",
    "RunStateStore",
]
