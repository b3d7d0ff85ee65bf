"""Main rolegate CLI application."""

import typer
from rich.console import Console

from rolegate import __version__
from rolegate.commands import check, grants, init_db, roles, seed
from rolegate.config import get_settings
from rolegate.core.logging import configure_logging


console = Console()

app = typer.Typer(
    name="rolegate",
    help="Administer roles, permissions and identity grants.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register commands
app.command(name="init-db")(init_db.init_db)
app.command(name="seed")(seed.seed)
app.command(name="roles")(roles.list_roles)
app.command(name="create-role")(roles.create_role)
app.command(name="create-permission")(roles.create_permission)
app.command(name="delete-role")(roles.delete_role)
app.command(name="delete-permission")(roles.delete_permission)
app.command(name="grant-role")(grants.grant_role)
app.command(name="revoke-role")(grants.revoke_role)
app.command(name="grant-permission")(grants.grant_permission)
app.command(name="revoke-permission")(grants.revoke_permission)
app.command(name="show")(check.show)
app.command(name="check")(check.check)


@app.callback(invoke_without_command=True)
def version_callback(
    version: bool = typer.Option(
        False, "--version", "-V", help="Show version and exit."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show informational log output."
    ),
) -> None:
    """Rolegate CLI - manage the authorization store."""
    if version:
        console.print(f"[bold cyan]rolegate[/bold cyan] version {__version__}")
        raise typer.Exit()

    settings = get_settings()
    if not verbose:
        settings = settings.model_copy(update={"log_level": "WARNING"})
    configure_logging(settings)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
