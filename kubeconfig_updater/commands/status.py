"""kube-config-updater - Show last run outcome and cached certificate expiry"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import click
from rich.markup import escape
from rich.table import Table

from kubeconfig_updater.base import BaseCommand
from kubeconfig_updater.exceptions import StateError
from kubeconfig_updater.models import RunStatus
from kubeconfig_updater.services import (
    ConfigService,
    RunStateStore,
    check_local_expiry,
    friendly_error,
)

STATUS_STYLES = {
    RunStatus.FETCHED: "green",
    RunStatus.SKIPPED: "cyan",
    RunStatus.NO_CREDENTIAL: "yellow",
    RunStatus.AUTH_REJECTED: "red",
    RunStatus.FAILED: "red",
}


class StatusCommand(BaseCommand):
    """Per-server status table."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        state_path: Optional[str] = None,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(verbose=verbose, json_output=json_output)
        self.config_path = config_path
        self.state_path = state_path

    def collect(self) -> List[Dict[str, Any]]:
        """One row per configured server, in config order."""
        fleet = ConfigService(self.config_path).load()

        try:
            states = RunStateStore(self.state_path).read()
        except StateError as e:
            self.print_warning(f"Ignoring unreadable state file: {e.message}")
            states = {}

        rows = []
        for server in fleet.servers:
            state = states.get(server.name)
            cert = check_local_expiry(fleet.local_path_for(server))
            rows.append(
                {
                    "server": server.name,
                    "address": server.address,
                    "status": state.status.value if state else None,
                    "last_updated": (
                        state.last_updated.isoformat() if state and state.last_updated else None
                    ),
                    "cert_state": cert.state.value,
                    "cert_expires_at": cert.expires_at.isoformat() if cert.expires_at else None,
                    "error": state.error if state else None,
                }
            )
        return rows

    def _expiry_cell(self, row: Dict[str, Any]) -> str:
        if row["cert_expires_at"] is None:
            return "[dim]unknown[/dim]"
        expires_at = datetime.fromisoformat(row["cert_expires_at"])
        days = (expires_at - datetime.now(timezone.utc)).days
        if row["cert_state"] == "expired":
            return f"[red]{expires_at:%Y-%m-%d} (expired)[/red]"
        if days < 30:
            return f"[yellow]{expires_at:%Y-%m-%d} ({days}d)[/yellow]"
        return f"[green]{expires_at:%Y-%m-%d} ({days}d)[/green]"

    def execute(self) -> None:
        """Execute status command."""
        rows = self.collect()

        if self.json_output:
            self.output_json(rows)
            return

        if not rows:
            self.print_warning("No servers configured")
            return

        table = Table(title="Kubeconfig Status", title_justify="left", padding=(0, 1))
        table.add_column("Server", style="cyan", no_wrap=True)
        table.add_column("Address")
        table.add_column("Last Run")
        table.add_column("Updated", style="dim")
        table.add_column("Certificate")
        table.add_column("Details", style="dim")

        for row in rows:
            if row["status"]:
                style = STATUS_STYLES[RunStatus(row["status"])]
                status_cell = f"[{style}]{row['status']}[/{style}]"
            else:
                status_cell = "[dim]never run[/dim]"
            updated = row["last_updated"][:19].replace("T", " ") if row["last_updated"] else ""
            details = friendly_error(row["error"]) if row["error"] else ""
            table.add_row(
                escape(row["server"]),
                escape(row["address"]),
                status_cell,
                updated,
                self._expiry_cell(row),
                escape(details),
            )

        self.console.print(table)


@click.command()
@click.option("--config-path", type=click.Path(dir_okay=False), help="Path to config.toml")
@click.option("--state-path", type=click.Path(dir_okay=False), help="Run state file")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def status(config_path, state_path, json_output):
    """
    Show last run outcome and certificate expiry per server
    """
    cmd = StatusCommand(config_path=config_path, state_path=state_path, json_output=json_output)
    cmd.run()
