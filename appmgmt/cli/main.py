import click
from rich.console import Console
from pydantic import ValidationError

from appmgmt.config import get_settings
from appmgmt.utils.logging import level_for_verbosity, setup_logging

from .audit import audit_cmd
from .exemptions import app_exemption_cli, caller_exemption_cli
from .restriction import restriction_cli

console = Console()


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enables verbose mode.')
@click.option('--quiet', '-q', is_flag=True, help='Enables quiet mode.')
@click.option('--dry-run', is_flag=True, help='Show the writes without performing them.')
@click.pass_context
def app(ctx, verbose, quiet, dry_run):
    """
    Application management policy CLI for Microsoft Entra ID.
    """
    ctx.ensure_object(dict)
    ctx.obj['VERBOSE'] = verbose
    ctx.obj['QUIET'] = quiet

    setup_logging(level=level_for_verbosity(verbose, quiet))

    try:
        ctx.obj['SETTINGS'] = get_settings(DRY_RUN=True if dry_run else None)
    except ValidationError as e:
        console.print(f"[red]Configuration error: {e}[/red]", highlight=False)
        ctx.exit(1)

# Add subcommands
app.add_command(restriction_cli, name='restriction')
app.add_command(app_exemption_cli, name='app-exemption')
app.add_command(caller_exemption_cli, name='caller-exemption')
app.add_command(audit_cmd, name='audit')

if __name__ == '__main__':
    app()
