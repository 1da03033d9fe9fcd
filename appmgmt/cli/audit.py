import click
import json
from rich.console import Console
from rich.json import JSON
from rich.markup import escape
from rich.table import Table

from appmgmt.graph.client import GraphDirectoryClient
from appmgmt.operations.audit import audit
from .utils import get_settings_obj, handle_async_command

console = Console()


@click.command(name='audit')
@click.option('--policy-id', 'policy_ids', multiple=True, help='Custom policy id to audit (repeatable).')
@click.option('--all', 'include_all', is_flag=True, help='Audit every custom policy.')
@click.option('--json', 'json_output', is_flag=True, help='Output in JSON format.')
@click.pass_context
@handle_async_command
async def audit_cmd(ctx, policy_ids, include_all: bool, json_output: bool) -> None:
    """Shows the effective restrictions of the tenant and custom policies."""
    async with GraphDirectoryClient(get_settings_obj(ctx)) as client:
        rows = await audit(client, policy_ids=policy_ids, include_all=include_all)

    if json_output:
        console.print(JSON(json.dumps([row.model_dump(mode="json") for row in rows])))
        return

    table = Table(title="Effective Restrictions")
    table.add_column("Policy", style="cyan")
    table.add_column("Restriction", style="magenta")
    table.add_column("State", style="yellow")
    table.add_column("Inherited", style="blue")
    table.add_column("Exemptions", style="green")
    for row in rows:
        policy = row.display_name or row.policy_id or row.policy_type.value
        if row.error:
            table.add_row(policy, row.path or "-", f"[red]{escape(row.error)}[/red]", "", "")
            continue
        table.add_row(
            policy,
            row.path,
            row.state or "-",
            "✅" if row.inherited else "",
            ", ".join(row.exemptions),
        )
    console.print(table)
    if any(row.error for row in rows):
        console.print("[red]Some policies could not be audited.[/red]")
