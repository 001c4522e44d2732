"""
Tests for server jobs: skip logic, credentials, failure classification and runs.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import yaml

from kubeconfig_updater.exceptions import AuthenticationError, SSHError
from kubeconfig_updater.models import FailureKind, FleetConfig, RunStatus, ServerSpec, SkipReason
from kubeconfig_updater.services import (
    CredentialResolver,
    ServerJobRunner,
    classify_failure,
    friendly_error,
)


@pytest.fixture
def remote_config(kubeconfig_factory, cert_factory) -> bytes:
    cert_data, _ = cert_factory(valid_days=365)
    return kubeconfig_factory(cert_data=cert_data).encode()


@pytest.fixture
def make_runner(fleet, resolver, merger, state_store, recording_logger):
    def _make(fetcher, dry_run=False, resolver_override=None):
        return ServerJobRunner(
            fleet=fleet,
            resolver=resolver_override or resolver,
            fetcher=fetcher,
            merger=merger,
            state_store=state_store,
            dry_run=dry_run,
            logger=recording_logger,
        )

    return _make


def _cache_with_expiry(out_dir: Path, name: str, expiry: datetime, kubeconfig_factory) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / name
    path.write_text(kubeconfig_factory(preferences={"certificate-expires-at": expiry.isoformat()}))
    return path


class TestSkipLogic:
    def test_valid_cache_skips_without_lookup_or_fetch(
        self, fleet, out_dir, kubeconfig_factory, keyring_backend, fetcher_factory, make_runner
    ):
        expiry = datetime.now(timezone.utc) + timedelta(days=30)
        _cache_with_expiry(out_dir, "edge-1", expiry, kubeconfig_factory)
        fetcher = fetcher_factory()

        outcome = make_runner(fetcher).process_server(fleet.get_server("edge-1"))

        assert outcome.is_skipped
        assert outcome.skip_reason == SkipReason.CERT_STILL_VALID
        assert outcome.run_status == RunStatus.SKIPPED
        assert keyring_backend.lookups == []
        assert fetcher.calls == []

    def test_expired_cache_fetches(
        self, fleet, out_dir, kubeconfig_factory, remote_config, fetcher_factory, make_runner
    ):
        expiry = datetime.now(timezone.utc) - timedelta(days=1)
        _cache_with_expiry(out_dir, "edge-1", expiry, kubeconfig_factory)
        fetcher = fetcher_factory({"192.168.1.10": remote_config})

        outcome = make_runner(fetcher).process_server(fleet.get_server("edge-1"))

        assert outcome.is_fetched
        assert len(fetcher.calls) == 1

    def test_force_ignores_valid_cache(
        self, fleet, out_dir, kubeconfig_factory, remote_config, fetcher_factory, make_runner
    ):
        expiry = datetime.now(timezone.utc) + timedelta(days=30)
        _cache_with_expiry(out_dir, "edge-1", expiry, kubeconfig_factory)
        fetcher = fetcher_factory({"192.168.1.10": remote_config})

        outcome = make_runner(fetcher).process_server(fleet.get_server("edge-1"), force=True)

        assert outcome.is_fetched


class TestProcessServer:
    def test_fetch_merges_and_caches(
        self, fleet, out_dir, kubeconfig_path, remote_config, fetcher_factory, make_runner
    ):
        fetcher = fetcher_factory({"192.168.1.10": remote_config})

        outcome = make_runner(fetcher).process_server(fleet.get_server("edge-1"))

        assert outcome.is_fetched
        assert outcome.cert_expiry is not None
        call = fetcher.calls[0]
        assert call["user"] == "admin"
        assert call["remote_path"] == "/etc/rancher/k3s/k3s.yaml"
        assert call["password"] == "s3cret"

        cached = yaml.safe_load((out_dir / "edge-1").read_text())
        assert cached["current-context"] == "edge-1"
        assert cached["clusters"][0]["cluster"]["server"] == "https://10.0.0.5:6443"
        assert cached["preferences"]["source-file-sha256"] == hashlib.sha256(remote_config).hexdigest()
        merged = yaml.safe_load(kubeconfig_path.read_text())
        assert [c["name"] for c in merged["contexts"]] == ["edge-1"]

    def test_not_found_credential_fetches_without_password(
        self, fleet, remote_config, keyring_factory, fetcher_factory, make_runner
    ):
        fetcher = fetcher_factory({"192.168.1.10": remote_config})
        runner = make_runner(fetcher, resolver_override=CredentialResolver(keyring_factory()))

        outcome = runner.process_server(fleet.get_server("edge-1"))

        assert outcome.is_fetched
        assert fetcher.calls[0]["password"] is None

    def test_unavailable_keyring_skips(self, fleet, keyring_factory, fetcher_factory, make_runner):
        fetcher = fetcher_factory()
        locked = CredentialResolver(keyring_factory(unavailable="org.freedesktop.secrets missing"))

        outcome = make_runner(fetcher, resolver_override=locked).process_server(fleet.get_server("edge-1"))

        assert outcome.is_skipped
        assert outcome.skip_reason == SkipReason.KEYRING_UNAVAILABLE
        assert outcome.run_status == RunStatus.NO_CREDENTIAL
        assert fetcher.calls == []

    def test_auth_rejection(self, fleet, fetcher_factory, make_runner):
        fetcher = fetcher_factory({"192.168.1.10": AuthenticationError("192.168.1.10", "admin", "denied")})

        outcome = make_runner(fetcher).process_server(fleet.get_server("edge-1"))

        assert outcome.is_failed
        assert outcome.failure == FailureKind.AUTH_REJECTED
        assert outcome.to_run_state().status == RunStatus.AUTH_REJECTED
        assert "Authentication failed" in outcome.message

    def test_generic_failure(self, fleet, fetcher_factory, make_runner, recording_logger):
        fetcher = fetcher_factory({"192.168.1.10": SSHError("SSH command timed out after 30s")})

        outcome = make_runner(fetcher).process_server(fleet.get_server("edge-1"))

        assert outcome.failure == FailureKind.FAILED
        assert outcome.to_run_state().error == "SSH command timed out after 30s"
        assert any(line.startswith("[edge-1]") for line in recording_logger.messages("ERROR"))

    def test_bad_remote_content_fails(self, fleet, fetcher_factory, make_runner):
        fetcher = fetcher_factory({"192.168.1.10": b"apiVersion: v1\nkind: Config\nclusters: []\n"})
        outcome = make_runner(fetcher).process_server(fleet.get_server("edge-1"))
        assert outcome.is_failed
        assert "No clusters" in outcome.message

    def test_failed_merge_is_retried_next_run(
        self, fleet, out_dir, kubeconfig_path, remote_config, fetcher_factory, make_runner
    ):
        kubeconfig_path.parent.mkdir(parents=True, exist_ok=True)
        kubeconfig_path.write_text("- not\n- a mapping\n")
        fetcher = fetcher_factory({"192.168.1.10": remote_config})
        runner = make_runner(fetcher)

        first = runner.process_server(fleet.get_server("edge-1"))
        assert first.is_failed
        assert (out_dir / "edge-1").read_bytes() == remote_config

        kubeconfig_path.unlink()
        second = runner.process_server(fleet.get_server("edge-1"))

        assert second.is_fetched
        assert len(fetcher.calls) == 2
        merged = yaml.safe_load(kubeconfig_path.read_text())
        assert [c["name"] for c in merged["contexts"]] == ["edge-1"]

    def test_config_error_fails_before_io(self, keyring_backend, fetcher_factory, make_runner, out_dir):
        fleet_without_user = FleetConfig(
            local_output_dir=str(out_dir),
            servers=[ServerSpec("lonely", "h", "1.1.1.1", remote_path="/a", remote_filename="b")],
        )
        fetcher = fetcher_factory()
        runner = make_runner(fetcher)
        runner.fleet = fleet_without_user

        outcome = runner.process_server(fleet_without_user.servers[0])

        assert outcome.failure == FailureKind.FAILED
        assert "user not specified" in outcome.message
        assert keyring_backend.lookups == []
        assert fetcher.calls == []


class TestRun:
    def test_failure_is_isolated(
        self, fleet, state_store, kubeconfig_path, remote_config, fetcher_factory, make_runner
    ):
        fetcher = fetcher_factory(
            {
                "192.168.1.10": SSHError("connection refused"),
                "192.168.1.11": remote_config,
            }
        )

        outcomes, summary = make_runner(fetcher).run(fleet.servers)

        assert [o.server_name for o in outcomes] == ["edge-1", "edge-2"]
        assert summary.failed == 1 and summary.fetched == 1
        states = state_store.read()
        assert states["edge-1"].status == RunStatus.FAILED
        assert states["edge-2"].status == RunStatus.FETCHED
        merged = yaml.safe_load(kubeconfig_path.read_text())
        assert [c["name"] for c in merged["contexts"]] == ["prod-edge-2"]

    def test_state_merges_with_previous_entries(
        self, fleet, state_store, remote_config, fetcher_factory, make_runner
    ):
        from kubeconfig_updater.models import ServerRunState

        state_store.write({"retired": ServerRunState(RunStatus.FETCHED)})
        fetcher = fetcher_factory({"192.168.1.10": remote_config})

        make_runner(fetcher).run([fleet.get_server("edge-1")])

        assert set(state_store.read()) == {"retired", "edge-1"}

    def test_dry_run_changes_nothing(
        self, fleet, out_dir, kubeconfig_path, state_path, remote_config, fetcher_factory, make_runner
    ):
        fetcher = fetcher_factory({"192.168.1.10": remote_config, "192.168.1.11": remote_config})

        outcomes, summary = make_runner(fetcher, dry_run=True).run(fleet.servers)

        assert summary.fetched == 2
        assert all(o.is_fetched for o in outcomes)
        assert not out_dir.exists()
        assert not kubeconfig_path.exists()
        assert not state_path.exists()

    def test_empty_selection_warns(self, fetcher_factory, make_runner, recording_logger):
        outcomes, summary = make_runner(fetcher_factory()).run([])
        assert outcomes == []
        assert summary.total == 0
        assert recording_logger.has_warnings

    def test_summary_only_when_notable(
        self, fleet, out_dir, kubeconfig_factory, fetcher_factory, make_runner, recording_logger
    ):
        expiry = datetime.now(timezone.utc) + timedelta(days=30)
        for server in fleet.servers:
            _cache_with_expiry(out_dir, server.name, expiry, kubeconfig_factory)

        _, summary = make_runner(fetcher_factory()).run(fleet.servers)

        assert summary.skipped_cert_valid == 2
        assert not summary.is_notable
        assert not any(line.startswith("Done.") for line in recording_logger.messages("INFO"))


class TestProbe:
    def test_probe_reads_expiry_without_writing(
        self, fleet, out_dir, kubeconfig_path, kubeconfig_factory, cert_factory, fetcher_factory, make_runner
    ):
        cert_data, not_after = cert_factory(valid_days=42)
        fetcher = fetcher_factory({"192.168.1.10": kubeconfig_factory(cert_data=cert_data).encode()})

        result = make_runner(fetcher).probe_server(fleet.get_server("edge-1"))

        assert result.is_success
        assert result.cert_expiry == not_after
        assert not out_dir.exists()
        assert not kubeconfig_path.exists()

    def test_probe_reports_friendly_error(self, fleet, fetcher_factory, make_runner):
        fetcher = fetcher_factory({"192.168.1.10": SSHError("ssh: connect to host: Connection refused")})
        result = make_runner(fetcher).probe_server(fleet.get_server("edge-1"))
        assert not result.is_success
        assert result.error.startswith("Could not reach host")


@pytest.mark.parametrize(
    "error,expected",
    [
        (AuthenticationError("h", "u"), FailureKind.AUTH_REJECTED),
        (SSHError("Auth rejected by server"), FailureKind.AUTH_REJECTED),
        (RuntimeError("AUTHENTICATION FAILED for root"), FailureKind.AUTH_REJECTED),
        (SSHError("Connection refused"), FailureKind.FAILED),
        (ValueError("bad yaml"), FailureKind.FAILED),
    ],
)
def test_classify_failure(error, expected):
    assert classify_failure(error) == expected


@pytest.mark.parametrize(
    "text,prefix",
    [
        ("ssh: connect to host x port 22: No route to host", "Could not reach host"),
        ("Authentication failed for admin@h", "Password rejected"),
        ("sudo: a password is required", "Connected, but could not read"),
        ("Failed to parse kubeconfig YAML", "The remote file does not look like"),
        ("No clusters found in the kubeconfig file.", "The kubeconfig has no cluster"),
        ("Keyring is locked", "Keyring is locked"),
    ],
)
def test_friendly_error(text, prefix):
    assert friendly_error(text).startswith(prefix)


def test_friendly_error_falls_back_to_raw_text():
    assert friendly_error("something odd") == "something odd"
