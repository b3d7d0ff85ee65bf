"""Commands: rolegate roles / create-* / delete-* - Manage the catalog."""

import typer
from rich.console import Console
from rich.table import Table

from rolegate.runtime import RoleGate
from rolegate.store.repository import RoleSummary
from rolegate.utils import run_with_rolegate


console = Console()


def list_roles() -> None:
    """List every role with its permissions."""

    async def action(rolegate: RoleGate) -> tuple[list[RoleSummary], list[str]]:
        return (
            await rolegate.store.describe_roles(),
            await rolegate.store.all_permissions(),
        )

    summaries, permissions = run_with_rolegate(action)

    if not summaries:
        console.print("[yellow]No roles defined.[/yellow] Run 'rolegate seed' first.")
        return

    table = Table(title="Roles")
    table.add_column("Role", style="cyan")
    table.add_column("Description")
    table.add_column("Permissions", style="green")

    for summary in summaries:
        table.add_row(
            summary.name,
            summary.description or "",
            ", ".join(summary.permissions) or "-",
        )

    console.print(table)

    unused = sorted(
        set(permissions).difference(p for s in summaries for p in s.permissions)
    )
    if unused:
        console.print(
            f"\n[dim]Permissions not held by any role: {', '.join(unused)}[/dim]"
        )


def create_role(
    name: str = typer.Argument(..., help="Role name"),
    description: str | None = typer.Option(
        None, "--description", "-d", help="Human readable description"
    ),
) -> None:
    """Create a role."""

    async def action(rolegate: RoleGate) -> None:
        await rolegate.store.create_role(name, description)

    run_with_rolegate(action)
    console.print(f"[green]✓[/green] Created role [cyan]{name}[/cyan]")


def create_permission(
    name: str = typer.Argument(..., help="Permission name"),
    description: str | None = typer.Option(
        None, "--description", "-d", help="Human readable description"
    ),
) -> None:
    """Create a permission."""

    async def action(rolegate: RoleGate) -> None:
        await rolegate.store.create_permission(name, description)

    run_with_rolegate(action)
    console.print(f"[green]✓[/green] Created permission [cyan]{name}[/cyan]")


def delete_role(
    name: str = typer.Argument(..., help="Role name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a role and remove it from every identity."""
    if not yes:
        typer.confirm(f"Delete role '{name}' and all of its grants?", abort=True)

    async def action(rolegate: RoleGate) -> None:
        await rolegate.store.delete_role(name)

    run_with_rolegate(action)
    console.print(f"[green]✓[/green] Deleted role [cyan]{name}[/cyan]")


def delete_permission(
    name: str = typer.Argument(..., help="Permission name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a permission and remove it from every role and identity."""
    if not yes:
        typer.confirm(f"Delete permission '{name}' and all of its grants?", abort=True)

    async def action(rolegate: RoleGate) -> None:
        await rolegate.store.delete_permission(name)

    run_with_rolegate(action)
    console.print(f"[green]✓[/green] Deleted permission [cyan]{name}[/cyan]")
