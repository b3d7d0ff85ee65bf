"""Commands: rolegate show / check - Inspect what an identity may do."""

import typer
from rich.console import Console

from rolegate.gate.requirement import Requirement
from rolegate.runtime import RoleGate
from rolegate.store.repository import ResolvedIdentity
from rolegate.utils import run_with_rolegate


console = Console()


def show(identity: str = typer.Argument(..., help="Identity reference")) -> None:
    """Show the roles and effective permissions of an identity."""

    async def action(rolegate: RoleGate) -> tuple[bool, ResolvedIdentity, list[str]]:
        exists = await rolegate.store.identity_exists(identity)
        snapshot = await rolegate.resolver.snapshot(identity)
        direct = await rolegate.store.list_direct_permissions(identity)
        return exists, snapshot, direct

    exists, snapshot, direct = run_with_rolegate(action)

    if not exists:
        console.print(f"[yellow]Identity {identity} is not registered.[/yellow]")
        return

    console.print(f"\n[bold]{identity}[/bold]")
    console.print(f"  Roles: {', '.join(snapshot.roles) or '-'}")
    console.print("  Permissions:")
    if not snapshot.permissions:
        console.print("    -")
    for permission in sorted(snapshot.permissions):
        source = "direct" if permission in direct else "role"
        console.print(f"    {permission} [dim]({source})[/dim]")


def check(
    identity: str = typer.Argument(..., help="Identity reference"),
    expression: str = typer.Argument(
        ..., help="Requirement, e.g. 'role:admin,create-post|role:owner'"
    ),
) -> None:
    """Evaluate a requirement for an identity.

    Exits with status 0 when allowed, 1 when denied and 2 when the
    requirement is malformed or the store cannot be read.
    """

    async def action(rolegate: RoleGate) -> bool:
        requirement = Requirement.parse(expression)
        return await rolegate.gate.check(identity, requirement)

    if run_with_rolegate(action, error_exit_code=2):
        console.print(f"[green]allowed[/green] {identity}: {expression}")
        return

    console.print(f"[red]denied[/red] {identity}: {expression}")
    raise typer.Exit(1)
