"""
kube-config-updater Constants

Centralized constants for well-known paths, defaults, and timeouts.
"""

# Well-known file locations
DEFAULT_CONFIG_PATH = "~/.kube_config_updater/config.toml"
DEFAULT_KUBECONFIG_PATH = "~/.kube/config"
STATE_FILE = "/tmp/kube_config_updater_state.json"
CREDENTIAL_FILE_PATH = "~/.config/kube_config_updater/credentials"

# Credential storage
KEYRING_SERVICE = "kube_config_updater"
DEFAULT_ACCOUNT = "_default"

# Keyring error fragments that mean "no secret storage on this machine"
KEYRING_UNAVAILABLE_MARKERS = (
    "platform secure storage",
    "dbus",
    "org.freedesktop.secrets",
    "no storage access",
    "secret service",
    "no recommended backend",
)

# Error fragments that mean the remote host rejected our credentials
AUTH_REJECTED_MARKERS = (
    "authentication failed",
    "auth rejected",
)

# SSH Configuration
SSH_PORT = 22
SSH_CONNECT_TIMEOUT = 10
SSH_OPERATION_TIMEOUT = 30
SSHPASS_AUTH_FAILED_EXIT = 5

# Kubernetes API server port on k3s nodes
KUBE_API_PORT = 6443

# Preferences injected into every processed kubeconfig
PREF_SOURCE_HASH = "source-file-sha256"
PREF_LAST_UPDATED = "script-last-updated"
PREF_CERT_EXPIRES = "certificate-expires-at"

# Log Configuration
LOG_DATE_FORMAT = "%Y-%m-%d"
LOG_TIME_FORMAT = "%H-%M-%S"
