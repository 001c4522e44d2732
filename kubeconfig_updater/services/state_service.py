"""
Run State Service

Persists the last outcome of every server to a small JSON file, keyed by
server name, so ``status`` can report on past runs.
"""

import json
from pathlib import Path
from typing import Dict, Optional, Union

from kubeconfig_updater.constants import STATE_FILE
from kubeconfig_updater.exceptions import StateError
from kubeconfig_updater.logger import NullLogger, SyncLogger
from kubeconfig_updater.models.results import ServerRunState
from kubeconfig_updater.utils import atomic_write, expand_path


class RunStateStore:
    """
    JSON-backed store of per-server run state.

    Only the main thread writes, once per run, after all jobs have finished.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        """
        Initialize state store.

        Args:
            path: State file path (defaults to /tmp/kube_config_updater_state.json)
        """
        self.path = expand_path(path or STATE_FILE)

    def read(self) -> Dict[str, ServerRunState]:
        """
        Read all entries.

        Returns:
            Mapping of server name to state, empty if the file does not exist

        Raises:
            StateError: If the file exists but is not valid state JSON
        """
        if not self.path.exists():
            return {}

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StateError(f"Failed to read state file {self.path}", context=str(e))

        if not isinstance(raw, dict):
            raise StateError(f"Invalid state file {self.path}: expected a JSON object")

        try:
            return {name: ServerRunState.from_dict(entry) for name, entry in raw.items()}
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StateError(f"Invalid state entry in {self.path}", context=str(e))

    def write(self, states: Dict[str, ServerRunState]) -> None:
        """
        Replace the state file with the given entries.

        Raises:
            StateError: If the file cannot be written
        """
        payload = {name: states[name].to_dict() for name in sorted(states)}
        try:
            atomic_write(self.path, json.dumps(payload, indent=2) + "\n")
        except OSError as e:
            raise StateError(f"Failed to write state file {self.path}", context=str(e))

    def update(
        self,
        entries: Dict[str, ServerRunState],
        logger: Optional[SyncLogger] = None,
    ) -> Dict[str, ServerRunState]:
        """
        Merge entries into the on-disk state and write once.

        An unreadable existing file is replaced rather than blocking the write.

        Returns:
            The full state that was written
        """
        try:
            current = self.read()
        except StateError as e:
            (logger or NullLogger()).warning(f"Replacing unreadable state file: {e.message}")
            current = {}
        current.update(entries)
        self.write(current)
        return current

    def update_server(self, server_name: str, state: ServerRunState) -> None:
        self.update({server_name: state})
