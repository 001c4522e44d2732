"""
SSH Connection Models

Dataclass models for SSH operations.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from kubeconfig_updater.constants import SSH_CONNECT_TIMEOUT, SSH_PORT


@dataclass
class SSHTarget:
    """SSH connection details for a specific host."""

    host: str
    user: str
    identity_file: Optional[str] = None
    port: int = SSH_PORT
    connect_timeout: int = SSH_CONNECT_TIMEOUT

    @property
    def identity_path(self) -> Optional[Path]:
        """Get expanded identity file path (resolves ~)."""
        if self.identity_file:
            return Path(self.identity_file).expanduser()
        return None

    @property
    def connection_string(self) -> str:
        """Get SSH connection string (user@host)."""
        return f"{self.user}@{self.host}"

    def ssh_command_prefix(self, password_auth: bool = False) -> list[str]:
        """
        Get SSH command prefix for subprocess.

        Authentication precedence: identity file, then password (through
        sshpass reading SSHPASS from the environment), then the SSH agent.
        """
        cmd = [
            "ssh",
            "-p",
            str(self.port),
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            "LogLevel=ERROR",
            "-o",
            f"ConnectTimeout={self.connect_timeout}",
        ]

        if self.identity_path:
            cmd += ["-i", str(self.identity_path), "-o", "IdentitiesOnly=yes", "-o", "BatchMode=yes"]
        elif password_auth:
            cmd = ["sshpass", "-e"] + cmd + [
                "-o",
                "PreferredAuthentications=password,keyboard-interactive",
                "-o",
                "PubkeyAuthentication=no",
            ]
        else:
            cmd += ["-o", "BatchMode=yes"]

        return cmd + [self.connection_string]

    def build_command(self, remote_command: str, password_auth: bool = False) -> list[str]:
        """Build full SSH command with remote command."""
        return self.ssh_command_prefix(password_auth) + [remote_command]

    def __repr__(self) -> str:
        return f"SSHTarget(host={self.host}, user={self.user})"
