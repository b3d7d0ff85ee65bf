"""Command: rolegate seed - Apply a seed definition."""

from pathlib import Path

import typer
from rich.console import Console

from rolegate.config import get_settings
from rolegate.core.errors import RoleGateError
from rolegate.runtime import RoleGate
from rolegate.seeding import DEFAULT_SEED, SeedReport, load_seed_file
from rolegate.utils import run_with_rolegate


console = Console()


def seed(
    file: Path | None = typer.Option(
        None,
        "--file",
        "-f",
        help="YAML seed file (defaults to ROLEGATE_SEED_FILE, then the built-in seed)",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """Create roles, permissions and grants from a seed.

    Without a file the default admin/user seed is applied. Entities that
    already exist are kept as they are.
    """
    path = file or get_settings().seed_file
    if path is None:
        definition = DEFAULT_SEED
        console.print("Applying built-in seed...")
    else:
        try:
            definition = load_seed_file(path)
        except RoleGateError as exc:
            console.print(f"[red]Error:[/red] {exc.message}")
            for error in exc.details.get("errors", []):
                console.print(f"  {error['field']}: {error['message']}")
            if "error" in exc.details:
                console.print(f"  {exc.details['error']}", markup=False)
            raise typer.Exit(1) from None
        console.print(f"Applying seed from [cyan]{path}[/cyan]...")

    async def action(rolegate: RoleGate) -> SeedReport:
        return await rolegate.seed(definition)

    report = run_with_rolegate(action)

    if not report.changed:
        console.print("[yellow]Nothing to do:[/yellow] store already matches the seed.")
        return

    for name in report.created_permissions:
        console.print(f"  [green]+[/green] permission {name}")
    for name in report.created_roles:
        console.print(f"  [green]+[/green] role {name}")
    for ref in report.registered_identities:
        console.print(f"  [green]+[/green] identity {ref}")
    console.print(f"[green]✓[/green] Seed applied ({report.grants} new grants)")
