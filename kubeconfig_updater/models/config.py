"""
Fleet Configuration Models

Dataclass models for the server fleet and its process-wide defaults.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any

from kubeconfig_updater.exceptions import ConfigurationError, ServerNotFoundError


@dataclass(frozen=True)
class ServerSpec:
    """A single remote server whose kubeconfig we keep in sync."""

    name: str
    address: str
    target_cluster_ip: str
    user: Optional[str] = None
    remote_path: Optional[str] = None
    remote_filename: Optional[str] = None
    context_name: Optional[str] = None
    identity_file: Optional[str] = None

    @property
    def unique_name(self) -> str:
        """Name used for the cluster, context and user entries after rewriting."""
        return self.context_name or self.name

    def resolve_user(self, fleet: "FleetConfig") -> str:
        """
        Get the SSH user, falling back to the fleet default.

        Raises:
            ConfigurationError: If neither the server nor the fleet sets a user
        """
        user = self.user or fleet.default_user
        if not user:
            raise ConfigurationError(f"[{self.name}] user not specified in config")
        return user

    def resolve_remote_path(self, fleet: "FleetConfig") -> str:
        """
        Get the full remote file path (directory + file name).

        Raises:
            ConfigurationError: If the directory or file name is missing
        """
        remote_path = self.remote_path or fleet.default_remote_path
        if not remote_path:
            raise ConfigurationError(f"[{self.name}] file_path not specified in config")

        remote_filename = self.remote_filename or fleet.default_remote_filename
        if not remote_filename:
            raise ConfigurationError(f"[{self.name}] file_name not specified in config")

        return f"{remote_path.rstrip('/')}/{remote_filename}"

    def resolve_identity_file(self, fleet: "FleetConfig") -> Optional[str]:
        """Get the SSH identity file, falling back to the fleet default (~ expanded)."""
        identity_file = self.identity_file or fleet.default_identity_file
        if identity_file:
            return str(Path(identity_file).expanduser())
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerSpec":
        """Create from a [[server]] table."""
        name = data.get("name")
        if not name:
            raise ConfigurationError("Server entry is missing required field 'name'")

        for required in ("address", "target_cluster_ip"):
            if not data.get(required):
                raise ConfigurationError(
                    f"[{name}] {required} not specified in config"
                )

        return cls(
            name=str(name),
            address=str(data["address"]),
            target_cluster_ip=str(data["target_cluster_ip"]),
            user=data.get("user"),
            remote_path=data.get("file_path"),
            remote_filename=data.get("file_name"),
            context_name=data.get("context_name"),
            identity_file=data.get("identity_file"),
        )

    def __repr__(self) -> str:
        return f"ServerSpec(name={self.name}, address={self.address})"


@dataclass
class FleetConfig:
    """Process-wide defaults plus the list of servers to process."""

    local_output_dir: str
    servers: list[ServerSpec] = field(default_factory=list)
    default_user: Optional[str] = None
    default_remote_path: Optional[str] = None
    default_remote_filename: Optional[str] = None
    default_identity_file: Optional[str] = None

    def __post_init__(self):
        seen: set[str] = set()
        for server in self.servers:
            if server.name in seen:
                raise ConfigurationError(
                    f"Duplicate server name '{server.name}' in config",
                    context="Server names must be unique",
                )
            seen.add(server.name)

    @property
    def output_dir(self) -> Path:
        """Expanded local output directory."""
        return Path(self.local_output_dir).expanduser()

    @property
    def server_names(self) -> list[str]:
        return [server.name for server in self.servers]

    def local_path_for(self, server: ServerSpec) -> Path:
        """Per-server cache file, named after the server."""
        return self.output_dir / server.name

    def get_server(self, name: str) -> ServerSpec:
        """
        Get a server by name.

        Raises:
            ServerNotFoundError: If no server has that name
        """
        for server in self.servers:
            if server.name == name:
                return server
        raise ServerNotFoundError(name, self.server_names)

    def select(self, names: Optional[list[str]] = None) -> list[ServerSpec]:
        """Servers matching the name filter (all servers when the filter is empty)."""
        if not names:
            return list(self.servers)
        return [server for server in self.servers if server.name in names]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FleetConfig":
        """Create from the parsed TOML document."""
        if not data.get("local_output_dir"):
            raise ConfigurationError("local_output_dir not specified in config")

        return cls(
            local_output_dir=str(data["local_output_dir"]),
            servers=[ServerSpec.from_dict(entry) for entry in data.get("server", [])],
            default_user=data.get("default_user"),
            default_remote_path=data.get("default_file_path"),
            default_remote_filename=data.get("default_file_name"),
            default_identity_file=data.get("default_identity_file"),
        )

    def __repr__(self) -> str:
        return f"FleetConfig(servers={len(self.servers)}, output={self.local_output_dir})"
