"""kube-config-updater - Manage SSH/sudo passwords in the keyring"""

from typing import Optional

import click
from rich.markup import escape
from rich.table import Table

from kubeconfig_updater.base import BaseCommand
from kubeconfig_updater.constants import DEFAULT_ACCOUNT
from kubeconfig_updater.exceptions import CredentialError
from kubeconfig_updater.services import (
    ConfigService,
    CredentialResolver,
    is_backend_unavailable_error,
)


def _account(name: Optional[str], use_default: bool) -> str:
    if use_default and name:
        raise click.UsageError("Pass either a server NAME or --default, not both")
    if use_default:
        return DEFAULT_ACCOUNT
    if not name:
        raise click.UsageError("Missing server NAME (or pass --default)")
    return name


def _label(account: str) -> str:
    return "default credential" if account == DEFAULT_ACCOUNT else f"'{account}'"


class CredentialSetCommand(BaseCommand):
    """Store a password, falling back to the file store with consent."""

    def __init__(self, account: str, verbose: bool = False):
        super().__init__(verbose=verbose)
        self.account = account

    def execute(self) -> None:
        secret = click.prompt(
            f"Password for {_label(self.account)}",
            hide_input=True,
            confirmation_prompt=True,
        )
        if not secret:
            self.exit_with_error("Password must not be empty")

        resolver = CredentialResolver.default()
        try:
            resolver.store(self.account, secret)
        except CredentialError as e:
            if not is_backend_unavailable_error(e.format_message()) or resolver.file_store_path is None:
                raise
            self.print_warning(f"System keyring is not available: {e.context or e.message}")
            if not self.confirm(
                f"Store the password in {escape(str(resolver.file_store_path))} (readable only by you) instead?"
            ):
                self.exit_with_error("Credential not stored")
            resolver.store_in_file(self.account, secret)
            self.print_success(f"Stored {_label(self.account)} in {resolver.file_store_path}")
            return

        self.print_success(f"Stored {_label(self.account)} in the system keyring")


class CredentialDeleteCommand(BaseCommand):
    def __init__(self, account: str, verbose: bool = False):
        super().__init__(verbose=verbose)
        self.account = account

    def execute(self) -> None:
        CredentialResolver.default().delete(self.account)
        self.print_success(f"Removed {_label(self.account)}")


class CredentialCheckCommand(BaseCommand):
    """Report which servers have a usable credential."""

    def __init__(self, names: tuple, config_path: Optional[str] = None, verbose: bool = False):
        super().__init__(verbose=verbose)
        self.names = list(names)
        self.config_path = config_path

    def execute(self) -> None:
        names = self.names or ConfigService(self.config_path).load().server_names
        if not names:
            self.print_warning("No servers configured")
            return

        table = Table(title="Credentials", title_justify="left", padding=(0, 1))
        table.add_column("Server", style="cyan", no_wrap=True)
        table.add_column("Credential")

        for name, result in CredentialResolver.default().check(names):
            if result.is_found:
                cell = "[green]found[/green]"
            elif result.is_not_found:
                cell = "[yellow]not found[/yellow] [dim](agent or key auth only)[/dim]"
            else:
                cell = f"[red]unavailable[/red] [dim]{escape(result.reason or '')}[/dim]"
            table.add_row(escape(name), cell)

        self.console.print(table)


@click.group()
def credential():
    """
    Manage stored SSH/sudo passwords

    \b
    Lookup order per server: its own entry, then the default entry.
    """


@credential.command("set")
@click.argument("name", required=False)
@click.option("--default", "use_default", is_flag=True, help="Set the fallback credential for all servers")
def credential_set(name, use_default):
    """
    Store a password for a server (prompts, input hidden)
    """
    cmd = CredentialSetCommand(_account(name, use_default))
    cmd.run()


@credential.command("delete")
@click.argument("name", required=False)
@click.option("--default", "use_default", is_flag=True, help="Delete the fallback credential")
def credential_delete(name, use_default):
    """
    Remove a stored password
    """
    cmd = CredentialDeleteCommand(_account(name, use_default))
    cmd.run()


@credential.command("check")
@click.argument("names", nargs=-1)
@click.option("--config-path", type=click.Path(dir_okay=False), help="Path to config.toml")
def credential_check(names, config_path):
    """
    Show whether each server has a credential (all configured servers by default)
    """
    cmd = CredentialCheckCommand(names, config_path=config_path)
    cmd.run()
