"""
kube-config-updater Exception Hierarchy

Clean exception hierarchy for consistent error handling across the updater.
"""

from typing import Optional


class KubeConfigUpdaterError(Exception):
    """Base exception for all kube-config-updater errors."""

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with optional context."""
        if self.context:
            return f"{self.message}\nContext: {self.context}"
        return self.message


class ConfigurationError(KubeConfigUpdaterError):
    """Raised when configuration is invalid or missing."""

    pass


class CredentialError(KubeConfigUpdaterError):
    """Raised when a credential cannot be stored or removed."""

    pass


class SSHError(KubeConfigUpdaterError):
    """Raised when SSH operations fail."""

    pass


class AuthenticationError(SSHError):
    """Raised when the remote host rejects our credentials."""

    def __init__(self, host: str, user: str, detail: str = ""):
        self.host = host
        self.user = user
        message = f"Authentication failed for {user}@{host}"
        super().__init__(message, detail or None)


class KubeconfigError(KubeConfigUpdaterError):
    """Raised when a kubeconfig document is structurally unusable."""

    pass


class StateError(KubeConfigUpdaterError):
    """Raised when state management operations fail."""

    pass


class ServerNotFoundError(ConfigurationError):
    """Raised when a server name is not present in the config."""

    def __init__(self, server_name: str, available_servers: list[str]):
        self.server_name = server_name
        self.available_servers = available_servers
        message = f"Server '{server_name}' not found in config"
        context = f"Available servers: {', '.join(available_servers) or 'none'}"
        super().__init__(message, context)
