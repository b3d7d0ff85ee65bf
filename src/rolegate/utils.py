"""Utility functions for the rolegate CLI."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console

from rolegate.config import get_settings
from rolegate.core.errors import RoleGateError
from rolegate.runtime import RoleGate


T = TypeVar("T")

console = Console()


def run_with_rolegate(
    action: Callable[[RoleGate], Awaitable[T]], error_exit_code: int = 1
) -> T:
    """Run an async action against a RoleGate built from settings.

    RoleGate errors are printed and turned into a non-zero exit.

    Args:
        action: Coroutine function receiving the RoleGate
        error_exit_code: Exit code used when the action fails

    Returns:
        Whatever the action returns
    """

    async def main() -> T:
        async with RoleGate.from_settings(get_settings()) as rolegate:
            # create_all skips existing tables
            await rolegate.create_schema()
            return await action(rolegate)

    try:
        return asyncio.run(main())
    except RoleGateError as exc:
        console.print(f"[red]Error:[/red] {exc.message}")
        for key, value in exc.details.items():
            console.print(f"  {key}: {value}")
        raise typer.Exit(error_exit_code) from None
