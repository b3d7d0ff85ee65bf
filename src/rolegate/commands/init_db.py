"""Command: rolegate init-db - Create the authorization tables."""

from rich.console import Console

from rolegate.config import get_settings
from rolegate.runtime import RoleGate
from rolegate.utils import run_with_rolegate


console = Console()


def init_db() -> None:
    """Create the rolegate tables in the configured database.

    Existing tables are left untouched, so the command is safe to rerun.
    """

    async def action(rolegate: RoleGate) -> tuple[int, int]:
        # run_with_rolegate has already created any missing tables
        roles = await rolegate.store.all_roles()
        permissions = await rolegate.store.all_permissions()
        return len(roles), len(permissions)

    role_count, permission_count = run_with_rolegate(action)
    console.print(
        f"[green]✓[/green] Schema ready at [cyan]{get_settings().database_url}[/cyan]"
    )
    console.print(f"  {role_count} roles, {permission_count} permissions")
