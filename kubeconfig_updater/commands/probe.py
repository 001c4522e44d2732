"""kube-config-updater - Read a server's certificate expiry without writing anything"""

from datetime import datetime, timezone
from typing import Optional

import click

from kubeconfig_updater.base import BaseCommand
from kubeconfig_updater.logger import SyncLogger
from kubeconfig_updater.services import (
    ConfigService,
    CredentialResolver,
    ServerJobRunner,
    SSHService,
)


class ProbeCommand(BaseCommand):
    """Fetch one remote kubeconfig and report its client certificate expiry."""

    def __init__(self, server_name: str, config_path: Optional[str] = None, verbose: bool = False):
        super().__init__(verbose=verbose)
        self.server_name = server_name
        self.config_path = config_path

    def execute(self) -> None:
        fleet = ConfigService(self.config_path).load()
        server = fleet.get_server(self.server_name)

        self.logger = SyncLogger("probe", verbose=self.verbose)
        runner = ServerJobRunner(
            fleet=fleet,
            resolver=CredentialResolver.default(self.logger),
            fetcher=SSHService(logger=self.logger),
            logger=self.logger,
        )
        result = runner.probe_server(server)

        if not result.is_success:
            self.exit_with_error(f"[{server.name}] {result.error}")

        remaining = result.cert_expiry - datetime.now(timezone.utc)
        if remaining.total_seconds() <= 0:
            self.print_warning(f"[{server.name}] Certificate expired on {result.cert_expiry.isoformat()}")
        else:
            self.print_success(
                f"[{server.name}] Certificate expires on {result.cert_expiry.isoformat()} "
                f"({remaining.days} days left)"
            )


@click.command()
@click.argument("name")
@click.option("--config-path", type=click.Path(dir_okay=False), help="Path to config.toml")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def probe(name, config_path, verbose):
    """
    Show the remote certificate expiry for one server

    Nothing is written: no cache file, no merge, no state.
    """
    cmd = ProbeCommand(name, config_path=config_path, verbose=verbose)
    cmd.run()
