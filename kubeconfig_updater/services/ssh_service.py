"""SSH service for reading files from remote hosts."""

import os
import shlex
import subprocess
import time
from typing import Optional

from kubeconfig_updater.constants import SSH_OPERATION_TIMEOUT, SSHPASS_AUTH_FAILED_EXIT
from kubeconfig_updater.exceptions import AuthenticationError, SSHError
from kubeconfig_updater.logger import NullLogger, SyncLogger
from kubeconfig_updater.models.results import SSHResult
from kubeconfig_updater.models.ssh import SSHTarget


def _is_auth_rejection(result: SSHResult, password_auth: bool) -> bool:
    if password_auth and result.returncode == SSHPASS_AUTH_FAILED_EXIT:
        return True
    # OpenSSH reports "user@host: Permission denied (publickey,password)."
    return result.returncode == 255 and "permission denied (" in result.stderr.lower()


class SSHService:
    """Service for SSH operations."""

    def __init__(
        self,
        timeout: int = SSH_OPERATION_TIMEOUT,
        logger: Optional[SyncLogger] = None,
    ):
        """
        Initialize SSH service.

        Args:
            timeout: Operation timeout in seconds
            logger: Optional logger for connection progress
        """
        self.timeout = timeout
        self.logger = logger or NullLogger()

    def execute_command(
        self,
        target: SSHTarget,
        command: str,
        password: Optional[str] = None,
        stdin: Optional[bytes] = None,
    ) -> SSHResult:
        """
        Execute command on remote host via SSH.

        Args:
            target: Host, user and identity file
            command: Command to execute
            password: Password for sshpass (ignored when an identity file is set)
            stdin: Bytes fed to the remote command's input

        Returns:
            SSHResult with execution details
        """
        password_auth = password is not None and target.identity_path is None
        ssh_cmd = target.build_command(command, password_auth=password_auth)

        env = None
        if password_auth:
            env = dict(os.environ, SSHPASS=password)

        start_time = time.time()

        try:
            result = subprocess.run(
                ssh_cmd,
                input=stdin,
                capture_output=True,
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired:
            raise SSHError(
                f"SSH command timed out after {self.timeout}s",
                context=f"Host: {target.host}",
            )
        except FileNotFoundError as e:
            tool = "sshpass" if password_auth else "ssh"
            raise SSHError(
                f"'{tool}' executable not found",
                context=f"Install {tool} to connect to {target.host} ({e})",
            )

        return SSHResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr.decode("utf-8", errors="replace"),
            host=target.host,
            command=command,
            duration_seconds=time.time() - start_time,
        )

    def fetch_file(
        self,
        host: str,
        user: str,
        remote_path: str,
        identity_file: Optional[str] = None,
        password: Optional[str] = None,
        server_name: Optional[str] = None,
    ) -> bytes:
        """
        Read a remote file over SSH.

        When a password is known, the file is read with ``sudo -S`` and the
        password is written to the command's stdin; otherwise plain ``cat``.

        Args:
            host: SSH host (port 22)
            user: Unix user for authentication
            remote_path: Absolute path of the file on the remote host
            identity_file: Optional private key path
            password: Optional SSH password, also used as the sudo password
            server_name: Used only for log messages

        Returns:
            Raw file content

        Raises:
            AuthenticationError: If the host rejected our credentials
            SSHError: On connection failure, timeout, or non-zero remote exit
        """
        label = server_name or host
        target = SSHTarget(host=host, user=user, identity_file=identity_file)

        if target.identity_path:
            self.logger.info(f"[{label}] Authenticating with private key: {target.identity_path}")
        elif password is not None:
            self.logger.info(f"[{label}] Authenticating with password")
        else:
            self.logger.info(f"[{label}] Authenticating with SSH agent")

        if password is not None:
            command = f"sudo -S -p '' cat {shlex.quote(remote_path)}"
            stdin = f"{password}\n".encode("utf-8")
        else:
            command = f"cat {shlex.quote(remote_path)}"
            stdin = None

        self.logger.info(f"[{label}] Attempting to connect to {host}")
        result = self.execute_command(target, command, password=password, stdin=stdin)

        if result.is_failure:
            if _is_auth_rejection(result, password_auth=password is not None and not target.identity_path):
                raise AuthenticationError(host, user, result.stderr.strip())
            raise SSHError(
                f"[{label}] Remote command failed with exit code {result.returncode}. "
                f"Stderr: {result.stderr.strip()}"
            )

        self.logger.debug(f"[{label}] Read {len(result.stdout)} bytes in {result.duration_seconds:.2f}s")
        return result.stdout
