"""
Shared test fixtures and helpers.
"""

import base64
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional, Union

import pytest
import yaml
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from kubeconfig_updater.models import CredentialLookupResult, FleetConfig, ServerSpec
from kubeconfig_updater.services import (
    CredentialResolver,
    KeyringBackend,
    KubeconfigMerger,
    RunStateStore,
)
from kubeconfig_updater.exceptions import CredentialError
from kubeconfig_updater.logger import NullLogger


class InMemoryKeyring(KeyringBackend):
    """Keyring backend backed by a dict; can simulate an unavailable backend."""

    def __init__(self, entries: Optional[Dict[str, str]] = None, unavailable: Optional[str] = None):
        self.entries = dict(entries or {})
        self.unavailable = unavailable
        self.lookups: list[str] = []
        self._lock = threading.Lock()

    def get(self, service: str, account: str) -> CredentialLookupResult:
        with self._lock:
            self.lookups.append(account)
        if self.unavailable:
            return CredentialLookupResult.unavailable(self.unavailable)
        if account in self.entries:
            return CredentialLookupResult.found(self.entries[account])
        return CredentialLookupResult.not_found()

    def set(self, service: str, account: str, secret: str) -> None:
        if self.unavailable:
            raise CredentialError("Could not store credential", context=self.unavailable)
        self.entries[account] = secret

    def delete(self, service: str, account: str) -> None:
        if self.unavailable:
            raise CredentialError("Could not delete credential", context=self.unavailable)
        self.entries.pop(account, None)


class RecordingLogger(NullLogger):
    """Keeps (level, message) pairs for assertions."""

    def __init__(self):
        super().__init__()
        self.records: list[tuple[str, str]] = []

    def log(self, message: str, level: str = "INFO"):
        super().log(message, level)
        self.records.append((level, message))

    def messages(self, level: str) -> list[str]:
        return [message for lvl, message in self.records if lvl == level]


class FakeFetcher:
    """Stands in for SSHService: returns canned bytes or raises per host."""

    def __init__(self, responses: Optional[Dict[str, Union[bytes, Exception]]] = None):
        self.responses = dict(responses or {})
        self.calls: list[dict] = []
        self._lock = threading.Lock()

    def fetch_file(self, host, user, remote_path, identity_file=None, password=None, server_name=None):
        with self._lock:
            self.calls.append(
                {
                    "host": host,
                    "user": user,
                    "remote_path": remote_path,
                    "identity_file": identity_file,
                    "password": password,
                    "server_name": server_name,
                }
            )
        response = self.responses[host]
        if isinstance(response, Exception):
            raise response
        return response


def make_cert(valid_days: float = 365) -> tuple[str, datetime]:
    """
    Self-signed client certificate.

    Returns:
        (base64 PEM as stored in client-certificate-data, notAfter in UTC)
    """
    now = datetime.now(timezone.utc).replace(microsecond=0)
    not_after = now + timedelta(days=valid_days)
    not_before = min(now, not_after) - timedelta(days=1)

    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "system:admin")])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    pem = cert.public_bytes(serialization.Encoding.PEM)
    return base64.b64encode(pem).decode("ascii"), not_after


def kubeconfig_yaml(
    cert_data: Optional[str] = "aGVsbG8gd29ybGQ=",
    name: str = "default",
    server: str = "https://127.0.0.1:6443",
    preferences: Optional[dict] = None,
) -> str:
    """A k3s-style kubeconfig with one cluster, context and user, all called ``name``."""
    user: dict = {"client-key-data": "a2V5"}
    if cert_data is not None:
        user["client-certificate-data"] = cert_data
    doc = {
        "apiVersion": "v1",
        "kind": "Config",
        "current-context": name,
        "clusters": [{"name": name, "cluster": {"server": server, "certificate-authority-data": "Y2E="}}],
        "contexts": [{"name": name, "context": {"cluster": name, "user": name}}],
        "users": [{"name": name, "user": user}],
    }
    if preferences is not None:
        doc["preferences"] = preferences
    return yaml.safe_dump(doc, sort_keys=False)


@pytest.fixture
def cert_factory():
    return make_cert


@pytest.fixture
def kubeconfig_factory():
    return kubeconfig_yaml


@pytest.fixture
def keyring_factory():
    return InMemoryKeyring


@pytest.fixture
def fetcher_factory():
    return FakeFetcher


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def out_dir(tmp_path: Path) -> Path:
    """Per-server cache directory."""
    return tmp_path / "out"


@pytest.fixture
def kubeconfig_path(tmp_path: Path) -> Path:
    """Shared kubeconfig location (not created)."""
    return tmp_path / "kube" / "config"


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "state.json"


@pytest.fixture
def fleet(out_dir: Path) -> FleetConfig:
    """Two servers sharing the fleet defaults."""
    return FleetConfig(
        local_output_dir=str(out_dir),
        default_user="admin",
        default_remote_path="/etc/rancher/k3s",
        default_remote_filename="k3s.yaml",
        servers=[
            ServerSpec(name="edge-1", address="192.168.1.10", target_cluster_ip="10.0.0.5"),
            ServerSpec(
                name="edge-2",
                address="192.168.1.11",
                target_cluster_ip="10.0.0.6",
                context_name="prod-edge-2",
            ),
        ],
    )


@pytest.fixture
def keyring_backend() -> InMemoryKeyring:
    return InMemoryKeyring({"_default": "s3cret"})


@pytest.fixture
def resolver(keyring_backend: InMemoryKeyring) -> CredentialResolver:
    return CredentialResolver(keyring_backend)


@pytest.fixture
def merger(kubeconfig_path: Path) -> KubeconfigMerger:
    return KubeconfigMerger(kubeconfig_path, lock=threading.Lock())


@pytest.fixture
def state_store(state_path: Path) -> RunStateStore:
    return RunStateStore(state_path)
