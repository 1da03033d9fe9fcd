import asyncio
import functools
import sys
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape

from appmgmt.config import Settings
from appmgmt.graph.client import GraphDirectoryClient
from appmgmt.operations.executor import IntentExecutor
from appmgmt.policy.errors import PolicyError
from appmgmt.policy.intents import IntentResult, Plan
from appmgmt.policy.schema import RestrictionPath

console = Console()


def handle_async_command(async_func):
    """Decorator to handle async CLI commands."""
    @functools.wraps(async_func)
    def wrapper(*args, **kwargs):
        try:
            return asyncio.run(async_func(*args, **kwargs))
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            sys.exit(1)
        except Exception as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]", highlight=False)
            sys.exit(1)
    return wrapper


def parse_path(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[RestrictionPath]:
    """Click callback turning ``category.type`` into a RestrictionPath."""
    if value is None:
        return None
    try:
        return RestrictionPath.parse(value)
    except PolicyError as e:
        raise click.BadParameter(e.message) from e


def get_settings_obj(ctx: click.Context) -> Settings:
    return ctx.obj["SETTINGS"]


async def run_planner(
    settings: Settings,
    planner: Callable[..., Awaitable[Plan]],
    *args: Any,
    **kwargs: Any,
) -> Tuple[Plan, List[IntentResult]]:
    """Plan with a fresh directory client, then apply (or dry-run) the plan."""
    async with GraphDirectoryClient(settings) as client:
        plan = await planner(client, *args, **kwargs)
        results = await IntentExecutor(client, dry_run=settings.DRY_RUN).apply(plan)
    return plan, results


def print_plan(plan: Plan, results: List[IntentResult]) -> None:
    console.print(f"[bold blue]{escape(plan.summary)}[/bold blue]", highlight=False)
    for note in plan.notes:
        console.print(f"[yellow]{escape(note)}[/yellow]", highlight=False)
    if plan.is_noop:
        console.print("[green]Nothing to change.[/green]")
        return
    for result in results:
        if result.applied:
            console.print(f"[green]✅ {escape(result.detail)}[/green]", highlight=False)
        else:
            console.print(f"[cyan]DRY-RUN[/cyan] {escape(result.detail)}", highlight=False)
