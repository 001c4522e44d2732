"""
Server Job Runner

Runs the fetch -> transform -> merge pipeline for every selected server in a
bounded thread pool, turns each job into a ServerOutcome, and records the
outcomes in the run state file once all jobs are done.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from functools import partial
from typing import Optional, Protocol

from kubeconfig_updater.constants import AUTH_REJECTED_MARKERS
from kubeconfig_updater.exceptions import (
    AuthenticationError,
    ConfigurationError,
    KubeconfigError,
    StateError,
)
from kubeconfig_updater.logger import NullLogger, SyncLogger
from kubeconfig_updater.models.config import FleetConfig, ServerSpec
from kubeconfig_updater.models.results import (
    FailureKind,
    ProbeResult,
    RunSummary,
    ServerOutcome,
    SkipReason,
)
from kubeconfig_updater.services.credential_service import CredentialResolver
from kubeconfig_updater.services.kubeconfig_service import (
    KubeconfigTransformer,
    certificate_expiry,
    check_local_expiry,
    parse_expiry_from_bytes,
)
from kubeconfig_updater.services.merge_service import KubeconfigMerger
from kubeconfig_updater.services.state_service import RunStateStore
from kubeconfig_updater.utils import sha256_hex


class RemoteFetcher(Protocol):
    """Anything that can read a remote file, SSHService in production."""

    def fetch_file(
        self,
        host: str,
        user: str,
        remote_path: str,
        identity_file: Optional[str] = None,
        password: Optional[str] = None,
        server_name: Optional[str] = None,
    ) -> bytes: ...


def classify_failure(error: BaseException) -> FailureKind:
    """Single place deciding whether a failed job was an authentication rejection."""
    if isinstance(error, AuthenticationError):
        return FailureKind.AUTH_REJECTED
    text = str(error).lower()
    if any(marker in text for marker in AUTH_REJECTED_MARKERS):
        return FailureKind.AUTH_REJECTED
    return FailureKind.FAILED


def friendly_error(text: str) -> str:
    """Turn raw error text into a message that says what to do next."""
    lower = text.lower()
    if "connection refused" in lower or "timed out" in lower or "no route" in lower:
        return "Could not reach host. Check the address and that SSH is running."
    if any(marker in lower for marker in AUTH_REJECTED_MARKERS):
        return "Password rejected. Update the credential with: kube-config-updater credential set <server>"
    if "sudo" in lower or "permission denied" in lower:
        return "Connected, but could not read the file. Check sudo rights and the remote path."
    if "yaml" in lower or "parse" in lower:
        return "The remote file does not look like a kubeconfig. Check file_path and file_name."
    if "no clusters" in lower:
        return "The kubeconfig has no cluster entries."
    if "keyring" in lower or "secret service" in lower:
        return "Keyring is locked or unavailable. Unlock it, or store the credential in the file store."
    return text


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


class ServerJobRunner:
    """
    Orchestrates server jobs.

    One merger instance is shared by all jobs so its lock serializes every
    write to the shared kubeconfig.
    """

    def __init__(
        self,
        fleet: FleetConfig,
        resolver: CredentialResolver,
        fetcher: RemoteFetcher,
        merger: Optional[KubeconfigMerger] = None,
        state_store: Optional[RunStateStore] = None,
        dry_run: bool = False,
        logger: Optional[SyncLogger] = None,
    ):
        """
        Initialize job runner.

        Args:
            fleet: Loaded fleet configuration
            resolver: Credential resolver used for every server
            fetcher: Remote file reader
            merger: Shared kubeconfig merger (default: ~/.kube/config)
            state_store: Run state store (default: /tmp state file)
            dry_run: Compute everything, write nothing
            logger: Logger shared by all jobs
        """
        self.fleet = fleet
        self.resolver = resolver
        self.fetcher = fetcher
        self.merger = merger or KubeconfigMerger()
        self.state_store = state_store or RunStateStore()
        self.dry_run = dry_run
        self.logger = logger or NullLogger()
        self.transformer = KubeconfigTransformer(self.logger)

    def _fetch(self, server: ServerSpec, password: Optional[str]) -> bytes:
        return self.fetcher.fetch_file(
            host=server.address,
            user=server.resolve_user(self.fleet),
            remote_path=server.resolve_remote_path(self.fleet),
            identity_file=server.resolve_identity_file(self.fleet),
            password=password,
            server_name=server.name,
        )

    def _process(self, server: ServerSpec, force: bool) -> ServerOutcome:
        # Surface config problems before touching the cache or the network
        server.resolve_user(self.fleet)
        server.resolve_remote_path(self.fleet)
        local_path = self.fleet.local_path_for(server)

        if force:
            self.logger.info(f"[{server.name}] Forced refresh, ignoring cached certificate")
        else:
            cert = check_local_expiry(local_path)
            if cert.is_valid:
                self.logger.info(
                    f"[{server.name}] Certificate is still valid until {cert.expires_at.isoformat()}. Skipping fetch."
                )
                return ServerOutcome.skipped(
                    server.name, SkipReason.CERT_STILL_VALID, cert_expiry=cert.expires_at
                )
            self.logger.info(f"[{server.name}] Local certificate is expired or missing. Proceeding to fetch.")

        credential = self.resolver.resolve(server.name)
        if credential.is_unavailable:
            self.logger.warning(f"[{server.name}] Keyring unavailable ({credential.reason}), skipping")
            return ServerOutcome.skipped(
                server.name, SkipReason.KEYRING_UNAVAILABLE, message=credential.reason
            )

        content = self._fetch(server, credential.secret if credential.is_found else None)
        source_hash = sha256_hex(content)

        doc = self.transformer.process_kubeconfig_file(
            local_path,
            content,
            server.target_cluster_ip,
            source_hash,
            server.context_name,
            server.name,
            dry_run=self.dry_run,
            on_ready=partial(self.merger.merge, dry_run=self.dry_run, logger=self.logger),
        )

        try:
            expiry = certificate_expiry(doc)
        except KubeconfigError:
            expiry = None

        self.logger.success(f"[{server.name}] Successfully fetched and merged")
        return ServerOutcome.fetched(server.name, cert_expiry=expiry)

    def process_server(self, server: ServerSpec, force: bool = False) -> ServerOutcome:
        """
        Run one server job to completion.

        Never raises: every error becomes a failed outcome.

        Args:
            server: Server to process
            force: Fetch even if the cached certificate is still valid

        Returns:
            Fetched, Skipped or Failed outcome
        """
        try:
            return self._process(server, force)
        except Exception as e:
            message = _error_message(e)
            kind = classify_failure(e)
            if kind == FailureKind.AUTH_REJECTED:
                self.logger.error(f"[{server.name}] Authentication rejected: {message}")
            else:
                self.logger.error(f"[{server.name}] FAILED: {message}")
            return ServerOutcome.failed(server.name, kind, message)

    def run(
        self, servers: list[ServerSpec], force: bool = False
    ) -> tuple[list[ServerOutcome], RunSummary]:
        """
        Process servers in parallel and record their outcomes.

        Args:
            servers: Servers to process
            force: Ignore cached certificate validity

        Returns:
            Outcomes in the order of ``servers`` and the run summary

        Raises:
            ConfigurationError: If the output directory cannot be created
        """
        summary = RunSummary()
        if not servers:
            self.logger.warning("No servers found to process. Check your --servers flag or config file.")
            return [], summary

        output_dir = self.fleet.output_dir
        if self.dry_run:
            self.logger.info(f"DRY-RUN: Would use output directory: {output_dir}")
        else:
            try:
                output_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ConfigurationError(
                    f"Could not create output directory '{output_dir}'", context=str(e)
                )
            self.logger.info(f"Using output directory: {output_dir}")

        workers = min(len(servers), os.cpu_count() or 1)
        self.logger.debug(f"Processing {len(servers)} server(s) with {workers} worker(s)")

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self.process_server, server, force) for server in servers]
            outcomes = [future.result() for future in futures]

        for outcome in outcomes:
            summary.record(outcome)

        self._record_state(outcomes)

        if summary.is_notable:
            self.logger.info(summary.format())

        return outcomes, summary

    def _record_state(self, outcomes: list[ServerOutcome]) -> None:
        if self.dry_run:
            self.logger.info(f"DRY-RUN: Would update run state at {self.state_store.path}")
            return

        now = datetime.now(timezone.utc)
        entries = {outcome.server_name: outcome.to_run_state(now) for outcome in outcomes}
        try:
            self.state_store.update(entries, logger=self.logger)
        except StateError as e:
            self.logger.warning(f"Could not write run state: {e.message}")

    def probe_server(self, server: ServerSpec) -> ProbeResult:
        """
        Read the remote certificate expiry without writing anything.

        Returns:
            ProbeResult with the expiry, or a friendly error message
        """
        try:
            credential = self.resolver.resolve(server.name)
            password = credential.secret if credential.is_found else None
            content = self._fetch(server, password)
        except Exception as e:
            return ProbeResult(server.name, error=friendly_error(_error_message(e)))

        expiry = parse_expiry_from_bytes(content)
        if expiry is None:
            return ProbeResult(
                server.name,
                error="Fetched the file but could not read a client certificate from it.",
            )
        return ProbeResult(server.name, cert_expiry=expiry)
