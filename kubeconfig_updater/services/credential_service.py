"""
Credential Resolution Service

Layered password lookup across the OS keyring and a file-based fallback store.
Secrets returned here must never be passed to a logger.
"""

import base64
import binascii
import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from kubeconfig_updater.constants import (
    CREDENTIAL_FILE_PATH,
    DEFAULT_ACCOUNT,
    KEYRING_SERVICE,
    KEYRING_UNAVAILABLE_MARKERS,
)
from kubeconfig_updater.exceptions import CredentialError
from kubeconfig_updater.logger import NullLogger, SyncLogger
from kubeconfig_updater.models.credentials import CredentialLookupResult
from kubeconfig_updater.utils import atomic_write


class KeyringBackend(ABC):
    """Abstraction over a secret store, so tests can inject an in-memory one."""

    @abstractmethod
    def get(self, service: str, account: str) -> CredentialLookupResult:
        """Look up one secret. Must not raise for a missing entry."""

    @abstractmethod
    def set(self, service: str, account: str, secret: str) -> None:
        """Store one secret. Raises CredentialError on failure."""

    @abstractmethod
    def delete(self, service: str, account: str) -> None:
        """Remove one secret. Deleting a missing entry is not an error."""


class SystemKeyring(KeyringBackend):
    """OS keyring (macOS Keychain, Secret Service, Windows Credential Locker)."""

    def get(self, service: str, account: str) -> CredentialLookupResult:
        try:
            secret = keyring.get_password(service, account)
        except KeyringError as e:
            return CredentialLookupResult.unavailable(str(e) or type(e).__name__)

        if secret is None:
            return CredentialLookupResult.not_found()
        return CredentialLookupResult.found(secret)

    def set(self, service: str, account: str, secret: str) -> None:
        try:
            keyring.set_password(service, account, secret)
        except KeyringError as e:
            raise CredentialError(
                f"Could not store credential for '{account}' in the system keyring",
                context=str(e),
            )

    def delete(self, service: str, account: str) -> None:
        try:
            keyring.delete_password(service, account)
        except PasswordDeleteError:
            return
        except KeyringError as e:
            raise CredentialError(
                f"Could not delete credential for '{account}' from the system keyring",
                context=str(e),
            )


class FileKeyring(KeyringBackend):
    """
    File-based fallback store for machines without a secret service daemon.

    Format: one ``account<TAB>base64(secret)`` line per entry, ``#`` comments.
    The file is 0600 inside a 0700 directory, the same model as ~/.kube/config.
    """

    HEADER = (
        "# kube_config_updater credentials\n"
        "# Stored with restricted permissions (0600), only you can read this file.\n"
    )

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path or CREDENTIAL_FILE_PATH).expanduser()

    def _load(self) -> dict[str, str]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError:
            return {}

        store: dict[str, str] = {}
        for line in content.splitlines():
            if not line.strip() or line.startswith("#"):
                continue
            account, sep, encoded = line.partition("\t")
            if not sep:
                continue
            try:
                store[account] = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError):
                continue
        return store

    def _save(self, store: dict[str, str]) -> None:
        lines = [self.HEADER]
        for account, secret in store.items():
            encoded = base64.b64encode(secret.encode("utf-8")).decode("ascii")
            lines.append(f"{account}\t{encoded}\n")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            os.chmod(self.path.parent, 0o700)
            atomic_write(self.path, "".join(lines), mode=0o600)
        except OSError as e:
            raise CredentialError(
                f"Could not write credentials file '{self.path}'", context=str(e)
            )

    def get(self, service: str, account: str) -> CredentialLookupResult:
        secret = self._load().get(account)
        if secret is None:
            return CredentialLookupResult.not_found()
        return CredentialLookupResult.found(secret)

    def set(self, service: str, account: str, secret: str) -> None:
        store = self._load()
        store[account] = secret
        self._save(store)

    def delete(self, service: str, account: str) -> None:
        store = self._load()
        if store.pop(account, None) is not None:
            self._save(store)


def is_backend_unavailable_error(message: str) -> bool:
    """
    True if a keyring error means the secret service is not available at all
    (as opposed to a transient or permission error). Used to decide whether to
    offer the file-based fallback.
    """
    lower = message.lower()
    return any(marker in lower for marker in KEYRING_UNAVAILABLE_MARKERS)


def default_secondary_backend() -> Optional[KeyringBackend]:
    """The file store is only a fallback where the keyring can be missing."""
    if sys.platform == "darwin":
        return None
    return FileKeyring()


class CredentialResolver:
    """
    Resolves SSH/sudo passwords for servers.

    Lookup order: the server's own entry, then the ``_default`` entry. When the
    primary backend cannot be reached and a secondary store exists, the same
    two lookups are retried against the secondary.
    """

    def __init__(
        self,
        primary: Optional[KeyringBackend] = None,
        secondary: Optional[KeyringBackend] = None,
        logger: Optional[SyncLogger] = None,
    ):
        self.primary = primary or SystemKeyring()
        self.secondary = secondary
        self.logger = logger or NullLogger()

    @classmethod
    def default(cls, logger: Optional[SyncLogger] = None) -> "CredentialResolver":
        return cls(SystemKeyring(), default_secondary_backend(), logger=logger)

    def _lookup(self, server_name: str, backend: KeyringBackend) -> CredentialLookupResult:
        result = backend.get(KEYRING_SERVICE, server_name)
        if not result.is_not_found:
            return result

        fallback = backend.get(KEYRING_SERVICE, DEFAULT_ACCOUNT)
        if fallback.is_found:
            return fallback
        return CredentialLookupResult.not_found()

    def resolve(self, server_name: str) -> CredentialLookupResult:
        """
        Look up the credential for a server.

        Args:
            server_name: Server name (keyring account)

        Returns:
            Found(secret), NotFound, or Unavailable(reason)
        """
        result = self._lookup(server_name, self.primary)
        if result.is_unavailable and self.secondary is not None:
            self.logger.debug(
                f"[{server_name}] System keyring unavailable ({result.reason}), trying file store"
            )
            return self._lookup(server_name, self.secondary)
        return result

    def check(self, server_names: list[str]) -> list[tuple[str, CredentialLookupResult]]:
        """Credential availability for each server name, in order."""
        return [(name, self.resolve(name)) for name in server_names]

    def store(self, server_name: str, secret: str) -> None:
        """Store a credential in the primary backend."""
        self.primary.set(KEYRING_SERVICE, server_name, secret)

    def store_in_file(self, server_name: str, secret: str) -> None:
        """
        Store a credential in the secondary file store.

        Only call this after the user explicitly consented to file storage.
        """
        if self.secondary is None:
            raise CredentialError(
                "No file-based credential store on this platform",
                context="Use the system keyring instead",
            )
        self.secondary.set(KEYRING_SERVICE, server_name, secret)

    def delete(self, server_name: str) -> None:
        """Remove a credential from the primary backend and the file store."""
        try:
            self.primary.delete(KEYRING_SERVICE, server_name)
        except CredentialError as e:
            # The keyring may simply be unavailable; the file store is still cleaned
            self.logger.debug(f"[{server_name}] Keyring delete skipped: {e.message}")
            if self.secondary is None:
                raise
        if self.secondary is not None:
            self.secondary.delete(KEYRING_SERVICE, server_name)

    @property
    def file_store_path(self) -> Optional[Path]:
        """Path of the file-based store, for display in prompts."""
        if isinstance(self.secondary, FileKeyring):
            return self.secondary.path
        return None
