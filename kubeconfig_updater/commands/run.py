"""kube-config-updater - Fetch, rewrite and merge kubeconfigs from every server"""

from typing import Optional

import click

from kubeconfig_updater.base import BaseCommand
from kubeconfig_updater.logger import SyncLogger
from kubeconfig_updater.services import (
    ConfigService,
    CredentialResolver,
    KubeconfigMerger,
    RunStateStore,
    ServerJobRunner,
    SSHService,
)


class RunCommand(BaseCommand):
    """Run the fetch pipeline for the selected servers."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        kubeconfig_path: Optional[str] = None,
        state_path: Optional[str] = None,
        log_dir: Optional[str] = None,
        servers: tuple = (),
        dry_run: bool = False,
        force: bool = False,
        verbose: bool = False,
    ):
        super().__init__(verbose=verbose)
        self.config_path = config_path
        self.kubeconfig_path = kubeconfig_path
        self.state_path = state_path
        self.log_dir = log_dir
        self.servers = list(servers)
        self.dry_run = dry_run
        self.force = force

    def execute(self) -> None:
        """Execute run command."""
        fleet = ConfigService(self.config_path).load()

        self.logger = SyncLogger("run", log_dir=self.log_dir, verbose=self.verbose)
        if self.dry_run:
            self.logger.info("DRY-RUN mode enabled. No files will be changed.")

        for name in self.servers:
            if name not in fleet.server_names:
                self.logger.warning(f"Server '{name}' not found in config, ignoring")

        runner = ServerJobRunner(
            fleet=fleet,
            resolver=CredentialResolver.default(self.logger),
            fetcher=SSHService(logger=self.logger),
            merger=KubeconfigMerger(self.kubeconfig_path),
            state_store=RunStateStore(self.state_path),
            dry_run=self.dry_run,
            logger=self.logger,
        )
        _, summary = runner.run(fleet.select(self.servers), force=self.force)

        if self.logger.log_path:
            self.print_dim(f"{summary.format()} Logs saved to: {self.logger.log_path}")


@click.command()
@click.option("--config-path", type=click.Path(dir_okay=False), help="Path to config.toml")
@click.option("--kubeconfig-path", type=click.Path(dir_okay=False), help="Shared kubeconfig to merge into")
@click.option("--state-path", type=click.Path(dir_okay=False), help="Run state file")
@click.option("--log-dir", type=click.Path(file_okay=False), help="Write logs to this directory instead of the console")
@click.option("-s", "--servers", multiple=True, help="Only process these servers (repeatable)")
@click.option("--dry-run", is_flag=True, help="Show what would change without writing anything")
@click.option("--force", is_flag=True, help="Fetch even if the cached certificate is still valid")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def run(config_path, kubeconfig_path, state_path, log_dir, servers, dry_run, force, verbose):
    """
    Fetch kubeconfigs and merge them into ~/.kube/config

    \b
    Servers whose cached certificate is still valid are skipped.
    Use --force to fetch anyway.
    """
    cmd = RunCommand(
        config_path=config_path,
        kubeconfig_path=kubeconfig_path,
        state_path=state_path,
        log_dir=log_dir,
        servers=servers,
        dry_run=dry_run,
        force=force,
        verbose=verbose,
    )
    cmd.run()
