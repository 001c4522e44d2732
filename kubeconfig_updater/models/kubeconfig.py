"""
Kubeconfig Document Models

Dataclass models for the subset of the kubeconfig format we read and rewrite.
Fields we do not model are carried in ``extra`` so round trips keep them.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any

import yaml

from kubeconfig_updater.exceptions import KubeconfigError


def _mapping(value: Any, what: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise KubeconfigError(f"Invalid kubeconfig: '{what}' must be a mapping")
    return value


def _sequence(value: Any, what: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise KubeconfigError(f"Invalid kubeconfig: '{what}' must be a list")
    return value


def _entry(name: Optional[str], key: str, body: Dict[str, Any]) -> Dict[str, Any]:
    entry: Dict[str, Any] = {}
    if name is not None:
        entry["name"] = name
    entry[key] = body
    return entry


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


@dataclass
class ClusterEntry:
    """A named cluster entry. Keys absent on input stay absent on output."""

    name: Optional[str]
    server_url: Optional[str] = None
    ca_data: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        cluster: Dict[str, Any] = {}
        if self.server_url is not None:
            cluster["server"] = self.server_url
        if self.ca_data is not None:
            cluster["certificate-authority-data"] = self.ca_data
        cluster.update(self.extra)
        return _entry(self.name, "cluster", cluster)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClusterEntry":
        data = _mapping(data, "clusters[]")
        cluster = dict(_mapping(data.get("cluster"), "clusters[].cluster"))
        return cls(
            name=_optional_str(data.get("name")),
            server_url=_optional_str(cluster.pop("server", None)),
            ca_data=cluster.pop("certificate-authority-data", None),
            extra=cluster,
        )


@dataclass
class ContextEntry:
    """A named pairing of one cluster and one user."""

    name: Optional[str]
    cluster_ref: Optional[str] = None
    user_ref: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        context: Dict[str, Any] = {}
        if self.cluster_ref is not None:
            context["cluster"] = self.cluster_ref
        if self.user_ref is not None:
            context["user"] = self.user_ref
        context.update(self.extra)
        return _entry(self.name, "context", context)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContextEntry":
        data = _mapping(data, "contexts[]")
        context = dict(_mapping(data.get("context"), "contexts[].context"))
        return cls(
            name=_optional_str(data.get("name")),
            cluster_ref=_optional_str(context.pop("cluster", None)),
            user_ref=_optional_str(context.pop("user", None)),
            extra=context,
        )


@dataclass
class UserEntry:
    """A named user entry with client certificate credentials."""

    name: Optional[str]
    cert_data: Optional[str] = None
    key_data: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        user: Dict[str, Any] = {}
        if self.cert_data is not None:
            user["client-certificate-data"] = self.cert_data
        if self.key_data is not None:
            user["client-key-data"] = self.key_data
        user.update(self.extra)
        return _entry(self.name, "user", user)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserEntry":
        data = _mapping(data, "users[]")
        user = dict(_mapping(data.get("user"), "users[].user"))
        return cls(
            name=_optional_str(data.get("name")),
            cert_data=user.pop("client-certificate-data", None),
            key_data=user.pop("client-key-data", None),
            extra=user,
        )

    def __repr__(self) -> str:
        return f"UserEntry(name={self.name})"


@dataclass
class KubeDocument:
    """A parsed kubeconfig file."""

    api_version: str = "v1"
    kind: str = "Config"
    current_context: str = ""
    clusters: list[ClusterEntry] = field(default_factory=list)
    contexts: list[ContextEntry] = field(default_factory=list)
    users: list[UserEntry] = field(default_factory=list)
    preferences: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "KubeDocument":
        """Skeleton document used when the shared kubeconfig does not exist yet."""
        return cls()

    def get_context(self, name: str) -> Optional[ContextEntry]:
        return next((c for c in self.contexts if c.name == name), None)

    def get_user(self, name: str) -> Optional[UserEntry]:
        return next((u for u in self.users if u.name == name), None)

    def get_cluster(self, name: str) -> Optional[ClusterEntry]:
        return next((c for c in self.clusters if c.name == name), None)

    def active_user(self) -> Optional[UserEntry]:
        """User referenced by the current context, if both exist."""
        context = self.get_context(self.current_context)
        if context is None:
            return None
        return self.get_user(context.user_ref)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "current-context": self.current_context,
            "clusters": [c.to_dict() for c in self.clusters],
            "contexts": [c.to_dict() for c in self.contexts],
            "users": [u.to_dict() for u in self.users],
        }
        if self.preferences:
            data["preferences"] = dict(self.preferences)
        data.update(self.extra)
        return data

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KubeDocument":
        data = dict(_mapping(data, "document"))
        return cls(
            api_version=str(data.pop("apiVersion", "v1")),
            kind=str(data.pop("kind", "Config")),
            current_context=str(data.pop("current-context", "") or ""),
            clusters=[
                ClusterEntry.from_dict(c)
                for c in _sequence(data.pop("clusters", None), "clusters")
            ],
            contexts=[
                ContextEntry.from_dict(c)
                for c in _sequence(data.pop("contexts", None), "contexts")
            ],
            users=[
                UserEntry.from_dict(u)
                for u in _sequence(data.pop("users", None), "users")
            ],
            preferences=dict(_mapping(data.pop("preferences", None), "preferences")),
            extra=data,
        )

    @classmethod
    def from_yaml(cls, content: str) -> "KubeDocument":
        """
        Parse kubeconfig YAML.

        Raises:
            KubeconfigError: If the content is not YAML or not a kubeconfig mapping
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise KubeconfigError("Failed to parse kubeconfig YAML", context=str(e))
        if not isinstance(data, dict):
            raise KubeconfigError("Failed to parse kubeconfig YAML: not a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_bytes(cls, content: bytes) -> "KubeDocument":
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise KubeconfigError("Kubeconfig is not valid UTF-8", context=str(e))
        return cls.from_yaml(text)

    def __repr__(self) -> str:
        return (
            f"KubeDocument(current_context={self.current_context}, "
            f"clusters={len(self.clusters)}, contexts={len(self.contexts)}, users={len(self.users)})"
        )
