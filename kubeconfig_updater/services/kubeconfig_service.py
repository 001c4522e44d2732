"""
Kubeconfig Transform Service

Parses fetched kubeconfig files, stamps provenance metadata into their
preferences, and renames the cluster/context/user entries to one unique name
so several servers can live in the same merged kubeconfig.
"""

import base64
import binascii
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from cryptography import x509

from kubeconfig_updater.constants import (
    KUBE_API_PORT,
    PREF_CERT_EXPIRES,
    PREF_LAST_UPDATED,
    PREF_SOURCE_HASH,
)
from kubeconfig_updater.exceptions import KubeconfigError
from kubeconfig_updater.logger import NullLogger, SyncLogger
from kubeconfig_updater.models.kubeconfig import KubeDocument
from kubeconfig_updater.models.results import CertStatus
from kubeconfig_updater.utils import atomic_write


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    # PyYAML may already have resolved an unquoted timestamp to a datetime
    if isinstance(value, datetime):
        return _as_utc(value)
    if not isinstance(value, str):
        return None
    try:
        return _as_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


def certificate_expiry(doc: KubeDocument) -> datetime:
    """
    Expiry (notAfter, UTC) of the active context's client certificate.

    Raises:
        KubeconfigError: If the context, user or certificate cannot be resolved
    """
    context = doc.get_context(doc.current_context)
    if context is None:
        raise KubeconfigError(f"Could not find context '{doc.current_context}'")

    user = doc.get_user(context.user_ref)
    if user is None:
        raise KubeconfigError(f"Could not find user '{context.user_ref}'")
    if not user.cert_data:
        raise KubeconfigError(f"User '{user.name}' has no client-certificate-data")

    try:
        pem = base64.b64decode(user.cert_data, validate=True)
        cert = x509.load_pem_x509_certificate(pem)
    except (binascii.Error, ValueError) as e:
        raise KubeconfigError(
            f"Failed to parse PEM certificate for user '{user.name}'", context=str(e)
        )

    return cert.not_valid_after_utc


def parse_expiry_from_bytes(content: bytes) -> Optional[datetime]:
    """
    Certificate expiry straight from raw kubeconfig bytes.

    Used for read-only probing: nothing is written. Returns None when the
    content cannot be parsed or carries no usable client certificate.
    """
    try:
        return certificate_expiry(KubeDocument.from_bytes(content))
    except KubeconfigError:
        return None


def check_local_expiry(path: Path, now: Optional[datetime] = None) -> CertStatus:
    """
    Validity of the certificate recorded in a cached kubeconfig.

    Missing file, unparseable YAML, or a missing/invalid expiry preference all
    yield Unknown, which callers must treat like Expired.
    """
    path = Path(path)
    if not path.exists():
        return CertStatus.unknown()

    try:
        doc = KubeDocument.from_yaml(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, KubeconfigError):
        return CertStatus.unknown()

    expiry = _parse_timestamp(doc.preferences.get(PREF_CERT_EXPIRES))
    if expiry is None:
        return CertStatus.unknown()

    if expiry <= (now or datetime.now(timezone.utc)):
        return CertStatus.expired(expiry)
    return CertStatus.valid(expiry)


def read_source_hash(path: Path) -> Optional[str]:
    """The source-file-sha256 recorded in a cached kubeconfig, if any."""
    try:
        doc = KubeDocument.from_yaml(Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, KubeconfigError):
        return None
    value = doc.preferences.get(PREF_SOURCE_HASH)
    return str(value) if value else None


class KubeconfigTransformer:
    """Rewrites fetched kubeconfig documents for one server."""

    def __init__(self, logger: Optional[SyncLogger] = None):
        self.logger = logger or NullLogger()

    def add_metadata(self, doc: KubeDocument, source_hash: str, label: str) -> None:
        """Stamp source hash, update time and (best effort) certificate expiry."""
        doc.preferences[PREF_SOURCE_HASH] = source_hash
        doc.preferences[PREF_LAST_UPDATED] = datetime.now(timezone.utc).isoformat()

        try:
            expiry = certificate_expiry(doc)
        except KubeconfigError as e:
            self.logger.warning(f"[{label}] {e.message}. Skipping certificate expiry")
            return

        self.logger.info(f"[{label}] Certificate expires on: {expiry.isoformat()}")
        doc.preferences[PREF_CERT_EXPIRES] = expiry.isoformat()

    def rewrite(
        self,
        doc: KubeDocument,
        target_ip: str,
        source_hash: str,
        context_name: Optional[str],
        server_name: str,
    ) -> KubeDocument:
        """
        Rewrite a fetched document in place and return it.

        The first cluster's server URL points at ``https://{target_ip}:6443``
        and the first cluster, user and context are all renamed to
        ``context_name`` (or the server name). References to the old names,
        and current-context, follow the rename.

        Raises:
            KubeconfigError: If the document has no clusters, contexts or users
        """
        if not doc.clusters:
            raise KubeconfigError("No clusters found in the kubeconfig file.")
        if not doc.contexts:
            raise KubeconfigError("No contexts found in the kubeconfig file.")
        if not doc.users:
            raise KubeconfigError("No users found in the kubeconfig file.")

        unique_name = context_name or server_name

        self.add_metadata(doc, source_hash, server_name)

        cluster = doc.clusters[0]
        new_url = f"https://{target_ip}:{KUBE_API_PORT}"
        self.logger.info(
            f"[{server_name}] Updating cluster '{cluster.name}' server from '{cluster.server_url}' to '{new_url}'"
        )
        old_cluster_name = cluster.name
        cluster.server_url = new_url
        cluster.name = unique_name

        user = doc.users[0]
        old_user_name = user.name
        user.name = unique_name

        context = doc.contexts[0]
        self.logger.info(f"[{server_name}] Updating context name from '{context.name}' to '{unique_name}'")
        context.name = unique_name
        context.cluster_ref = unique_name
        context.user_ref = unique_name

        for other in doc.contexts[1:]:
            if old_cluster_name is not None and other.cluster_ref == old_cluster_name:
                other.cluster_ref = unique_name
            if old_user_name is not None and other.user_ref == old_user_name:
                other.user_ref = unique_name

        doc.current_context = unique_name
        return doc

    def detect_drift(self, local_path: Path, source_hash: str, label: str) -> bool:
        """
        Warn when the remote file changed since the last successful fetch.

        Returns:
            True if a previous hash exists and differs
        """
        old_hash = read_source_hash(local_path)
        if old_hash is None or old_hash == source_hash:
            return False

        self.logger.warning(
            f"[{label}] Source file on remote has changed since last run "
            f"(SHA256: {old_hash[:8]} -> {source_hash[:8]})"
        )
        return True

    def process_kubeconfig_file(
        self,
        local_path: Path,
        content: bytes,
        target_ip: str,
        source_hash: str,
        context_name: Optional[str],
        server_name: str,
        dry_run: bool = False,
        on_ready: Optional[Callable[[KubeDocument], Any]] = None,
    ) -> KubeDocument:
        """
        Cache the fetched bytes, rewrite them, and save the processed document.

        ``on_ready`` runs on the rewritten document before the processed file
        is saved. If it raises, the cache keeps only the raw bytes, which carry
        no certificate expiry, so the next run fetches again instead of
        skipping.

        In dry-run mode nothing is written; the would-be effects are logged.
        """
        local_path = Path(local_path)
        self.detect_drift(local_path, source_hash, server_name)

        if dry_run:
            self.logger.info(f"[{server_name}] DRY-RUN: Would write config to {local_path}")
        else:
            atomic_write(local_path, content, mode=0o600)
            self.logger.info(f"[{server_name}] Config written to {local_path}")

        doc = KubeDocument.from_bytes(content)
        self.rewrite(doc, target_ip, source_hash, context_name, server_name)

        if on_ready is not None:
            on_ready(doc)

        if dry_run:
            self.logger.info(f"[{server_name}] DRY-RUN: Would have updated kubeconfig file at {local_path}")
        else:
            atomic_write(local_path, doc.to_yaml(), mode=0o600)
            self.logger.info(f"[{server_name}] Successfully updated and saved kubeconfig file")

        return doc
