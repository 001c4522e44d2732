"""
Tests for merging processed documents into the shared kubeconfig.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import yaml

from kubeconfig_updater.models import KubeDocument
from kubeconfig_updater.services import KubeconfigMerger, KubeconfigTransformer


def _processed(kubeconfig_factory, server_name: str, ip: str = "10.0.0.5") -> KubeDocument:
    doc = KubeDocument.from_yaml(kubeconfig_factory())
    return KubeconfigTransformer().rewrite(doc, ip, "f" * 64, None, server_name)


class TestMerge:
    def test_creates_missing_file(self, merger: KubeconfigMerger, kubeconfig_path: Path, kubeconfig_factory):
        merger.merge(_processed(kubeconfig_factory, "edge-1"))

        data = yaml.safe_load(kubeconfig_path.read_text())
        assert [c["name"] for c in data["clusters"]] == ["edge-1"]
        assert data["current-context"] == ""
        assert "preferences" not in data

    def test_idempotent(self, merger: KubeconfigMerger, kubeconfig_path: Path, kubeconfig_factory):
        doc = _processed(kubeconfig_factory, "edge-1")
        merger.merge(doc)
        first = kubeconfig_path.read_text()
        merger.merge(doc)
        assert kubeconfig_path.read_text() == first

    def test_replaces_same_name(self, merger: KubeconfigMerger, kubeconfig_factory):
        merger.merge(_processed(kubeconfig_factory, "edge-1", ip="10.0.0.5"))
        merged = merger.merge(_processed(kubeconfig_factory, "edge-1", ip="10.0.0.99"))

        assert len(merged.clusters) == 1
        assert merged.get_cluster("edge-1").server_url == "https://10.0.0.99:6443"

    def test_other_entries_untouched(self, merger: KubeconfigMerger, kubeconfig_path: Path, kubeconfig_factory):
        existing = yaml.safe_load(kubeconfig_factory(name="minikube", server="https://192.168.49.2:8443"))
        existing["preferences"] = {"colors": True}
        kubeconfig_path.parent.mkdir(parents=True)
        kubeconfig_path.write_text(yaml.safe_dump(existing, sort_keys=False))

        merger.merge(_processed(kubeconfig_factory, "edge-1"))

        data = yaml.safe_load(kubeconfig_path.read_text())
        assert data["current-context"] == "minikube"
        assert data["preferences"] == {"colors": True}
        assert data["clusters"][0] == existing["clusters"][0]
        assert [c["name"] for c in data["contexts"]] == ["minikube", "edge-1"]
        assert [u["name"] for u in data["users"]] == ["minikube", "edge-1"]

    def test_sparse_foreign_entries_keep_their_shape(
        self, merger: KubeconfigMerger, kubeconfig_path: Path, kubeconfig_factory
    ):
        existing = {
            "apiVersion": "v1",
            "kind": "Config",
            "current-context": "x",
            "clusters": [{"name": "x", "cluster": {"certificate-authority": "/ca"}}],
            "contexts": [{"name": "x", "context": {"cluster": "x"}}, {"context": {"cluster": "x"}}],
            "users": [],
        }
        kubeconfig_path.parent.mkdir(parents=True)
        kubeconfig_path.write_text(yaml.safe_dump(existing, sort_keys=False))

        merger.merge(_processed(kubeconfig_factory, "edge-1"))

        data = yaml.safe_load(kubeconfig_path.read_text())
        assert data["clusters"][0] == {"name": "x", "cluster": {"certificate-authority": "/ca"}}
        assert data["contexts"][0] == {"name": "x", "context": {"cluster": "x"}}
        assert data["contexts"][1] == {"context": {"cluster": "x"}}
        assert [u["name"] for u in data["users"]] == ["edge-1"]

    def test_dry_run_does_not_write(self, merger: KubeconfigMerger, kubeconfig_path: Path, kubeconfig_factory, recording_logger):
        merged = merger.merge(_processed(kubeconfig_factory, "edge-1"), dry_run=True, logger=recording_logger)

        assert merged.get_context("edge-1") is not None
        assert not kubeconfig_path.exists()
        assert any("DRY-RUN" in line for line in recording_logger.messages("INFO"))

    def test_concurrent_merges_keep_every_server(self, kubeconfig_path: Path, kubeconfig_factory):
        """Regression: unguarded read-modify-write lost updates under parallel jobs."""
        merger = KubeconfigMerger(kubeconfig_path, lock=threading.Lock())
        names = [f"edge-{i}" for i in range(16)]
        docs = [_processed(kubeconfig_factory, name) for name in names]

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(merger.merge, docs))

        merged = KubeDocument.from_yaml(kubeconfig_path.read_text())
        assert sorted(c.name for c in merged.contexts) == sorted(names)
        assert sorted(c.name for c in merged.clusters) == sorted(names)
        assert sorted(u.name for u in merged.users) == sorted(names)

    def test_default_lock_is_shared(self, tmp_path: Path):
        assert KubeconfigMerger(tmp_path / "a").lock is KubeconfigMerger(tmp_path / "b").lock
