"""
Kubeconfig Merge Service

Upserts one server's cluster/context/user entries into the shared kubeconfig
(~/.kube/config by default). Load, upsert and write happen under a single
lock, so concurrent server jobs cannot lose each other's updates.
"""

import threading
from pathlib import Path
from typing import Optional, Union

from kubeconfig_updater.constants import DEFAULT_KUBECONFIG_PATH
from kubeconfig_updater.exceptions import KubeconfigError
from kubeconfig_updater.logger import NullLogger, SyncLogger
from kubeconfig_updater.models.kubeconfig import KubeDocument
from kubeconfig_updater.utils import atomic_write, expand_path

# One lock per process for the default shared kubeconfig
_SHARED_LOCK = threading.Lock()


def _upsert(entries: list, incoming: list) -> tuple[int, int]:
    """Drop same-name entries, then append the incoming ones. Returns (added, replaced)."""
    incoming_names = {entry.name for entry in incoming}
    kept = [entry for entry in entries if entry.name not in incoming_names]
    replaced = len(entries) - len(kept)
    entries[:] = kept + list(incoming)
    return len(incoming) - replaced, replaced


class KubeconfigMerger:
    """Merges processed per-server documents into the shared kubeconfig."""

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        lock: Optional[threading.Lock] = None,
    ):
        """
        Args:
            path: Shared kubeconfig path (defaults to ~/.kube/config)
            lock: Lock guarding the read-modify-write; defaults to a
                process-wide lock
        """
        self.path = expand_path(path or DEFAULT_KUBECONFIG_PATH)
        self.lock = lock or _SHARED_LOCK

    def load(self) -> KubeDocument:
        """
        Load the shared kubeconfig, or an empty skeleton if it does not exist.

        Raises:
            KubeconfigError: If the file exists but cannot be parsed
        """
        if not self.path.exists():
            return KubeDocument.empty()
        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise KubeconfigError(f"Could not read {self.path}", context=str(e))
        return KubeDocument.from_yaml(content)

    def merge(
        self,
        fetched: KubeDocument,
        dry_run: bool = False,
        logger: Optional[SyncLogger] = None,
    ) -> KubeDocument:
        """
        Upsert a processed document's entries into the shared kubeconfig.

        Entries are matched by name: same-name entries are removed and the
        incoming ones appended. Everything else is left untouched. current-context
        and preferences of the shared file are never modified.

        Args:
            fetched: Processed per-server document
            dry_run: Only compute and log the result, do not write
            logger: Optional logger

        Returns:
            The merged document

        Raises:
            KubeconfigError: If the shared file cannot be read, parsed or written
        """
        logger = logger or NullLogger()

        with self.lock:
            merged = self.load()
            clusters = _upsert(merged.clusters, fetched.clusters)
            contexts = _upsert(merged.contexts, fetched.contexts)
            users = _upsert(merged.users, fetched.users)

            counts = (
                f"clusters +{clusters[0]}/~{clusters[1]}, "
                f"contexts +{contexts[0]}/~{contexts[1]}, "
                f"users +{users[0]}/~{users[1]}"
            )

            if dry_run:
                logger.info(f"DRY-RUN: Would merge into {self.path} ({counts})")
                return merged

            try:
                atomic_write(self.path, merged.to_yaml(), mode=0o600)
            except OSError as e:
                raise KubeconfigError(f"Could not write {self.path}", context=str(e))

        logger.debug(f"Merged into {self.path} ({counts})")
        return merged
