"""Commands: rolegate grant-* / revoke-* - Manage assignments."""

import typer
from rich.console import Console

from rolegate.runtime import RoleGate
from rolegate.utils import run_with_rolegate


console = Console()


def _target(role: str | None, identity: str | None) -> tuple[str, str]:
    """Resolve the --role/--identity pair to exactly one target."""
    if (role is None) == (identity is None):
        console.print("[red]Error:[/red] Pass exactly one of --role or --identity.")
        raise typer.Exit(1)
    if role is not None:
        return "role", role
    return "identity", identity  # type: ignore[return-value]


def grant_role(
    identity: str = typer.Argument(..., help="Identity reference"),
    role: str = typer.Argument(..., help="Role name"),
    register: bool = typer.Option(
        True,
        "--register/--no-register",
        help="Register the identity first if it is unknown",
    ),
) -> None:
    """Assign a role to an identity."""

    async def action(rolegate: RoleGate) -> bool:
        if register:
            await rolegate.store.register_identity(identity)
        return await rolegate.store.grant_role_to_identity(identity, role)

    if run_with_rolegate(action):
        console.print(
            f"[green]✓[/green] Granted role [cyan]{role}[/cyan] to {identity}"
        )
    else:
        console.print(f"[yellow]{identity} already has role {role}[/yellow]")


def revoke_role(
    identity: str = typer.Argument(..., help="Identity reference"),
    role: str = typer.Argument(..., help="Role name"),
) -> None:
    """Remove a role from an identity."""

    async def action(rolegate: RoleGate) -> bool:
        return await rolegate.store.revoke_role_from_identity(identity, role)

    if run_with_rolegate(action):
        console.print(
            f"[green]✓[/green] Revoked role [cyan]{role}[/cyan] from {identity}"
        )
    else:
        console.print(f"[yellow]{identity} does not have role {role}[/yellow]")


def grant_permission(
    permission: str = typer.Argument(..., help="Permission name"),
    role: str | None = typer.Option(None, "--role", "-r", help="Grant to this role"),
    identity: str | None = typer.Option(
        None, "--identity", "-i", help="Grant directly to this identity"
    ),
    register: bool = typer.Option(
        True,
        "--register/--no-register",
        help="Register the identity first if it is unknown",
    ),
) -> None:
    """Grant a permission to a role or directly to an identity."""
    kind, target = _target(role, identity)

    async def action(rolegate: RoleGate) -> bool:
        if kind == "role":
            return await rolegate.store.grant_permission_to_role(target, permission)
        if register:
            await rolegate.store.register_identity(target)
        return await rolegate.store.grant_permission_to_identity(target, permission)

    if run_with_rolegate(action):
        console.print(
            f"[green]✓[/green] Granted [cyan]{permission}[/cyan] to {kind} {target}"
        )
    else:
        console.print(f"[yellow]{kind} {target} already has {permission}[/yellow]")


def revoke_permission(
    permission: str = typer.Argument(..., help="Permission name"),
    role: str | None = typer.Option(None, "--role", "-r", help="Revoke from this role"),
    identity: str | None = typer.Option(
        None, "--identity", "-i", help="Revoke from this identity"
    ),
) -> None:
    """Revoke a permission from a role or from an identity's direct grants."""
    kind, target = _target(role, identity)

    async def action(rolegate: RoleGate) -> bool:
        if kind == "role":
            return await rolegate.store.revoke_permission_from_role(target, permission)
        return await rolegate.store.revoke_permission_from_identity(target, permission)

    if run_with_rolegate(action):
        console.print(
            f"[green]✓[/green] Revoked [cyan]{permission}[/cyan] from {kind} {target}"
        )
    else:
        console.print(f"[yellow]{kind} {target} does not have {permission}[/yellow]")
