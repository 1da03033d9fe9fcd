from datetime import timezone

import click

from appmgmt.operations.plans import RestrictionOptions, plan_set_restriction_state
from appmgmt.policy.models import RestrictionState
from .utils import get_settings_obj, handle_async_command, parse_path, print_plan, run_planner


@click.group(name='restriction')
def restriction_cli():
    """Enable or disable restrictions of the tenant or a custom policy."""
    pass


_RESTRICTION_OPTIONS = [
    click.argument('target', callback=parse_path),
    click.option('--policy-id', help='Custom policy id; the tenant policy when omitted.'),
    click.option('--created-after', type=click.DateTime(), help='Only restrict apps created after this UTC date.'),
    click.option('--exclude-saml/--include-saml', default=None, help='Exclude SAML applications.'),
    click.option('--exclude-v2-tokens/--include-v2-tokens', default=None,
                 help='Exclude applications receiving v2 tokens.'),
    click.option('--max-lifetime', help='ISO 8601 duration for lifetime restrictions, e.g. P90D.'),
]


def restriction_options(func):
    """Options shared by enable and disable."""
    for decorator in reversed(_RESTRICTION_OPTIONS):
        func = decorator(func)
    return func


def _options(created_after, exclude_saml, exclude_v2_tokens, max_lifetime) -> RestrictionOptions:
    return RestrictionOptions(
        restrict_for_apps_created_after=created_after.replace(tzinfo=timezone.utc) if created_after else None,
        exclude_saml=exclude_saml,
        exclude_apps_receiving_v2_tokens=exclude_v2_tokens,
        max_lifetime=max_lifetime,
    )


async def _set_state(ctx, state, target, policy_id, created_after, exclude_saml, exclude_v2_tokens, max_lifetime):
    plan, results = await run_planner(
        get_settings_obj(ctx),
        plan_set_restriction_state,
        target,
        state,
        _options(created_after, exclude_saml, exclude_v2_tokens, max_lifetime),
        policy_id=policy_id,
    )
    print_plan(plan, results)


@restriction_cli.command()
@restriction_options
@click.pass_context
@handle_async_command
async def enable(ctx, target, policy_id, created_after, exclude_saml, exclude_v2_tokens, max_lifetime) -> None:
    """Enables TARGET, written category.type or group.category.type."""
    await _set_state(
        ctx, RestrictionState.ENABLED, target, policy_id,
        created_after, exclude_saml, exclude_v2_tokens, max_lifetime,
    )


@restriction_cli.command()
@restriction_options
@click.pass_context
@handle_async_command
async def disable(ctx, target, policy_id, created_after, exclude_saml, exclude_v2_tokens, max_lifetime) -> None:
    """Disables TARGET, written category.type or group.category.type."""
    await _set_state(
        ctx, RestrictionState.DISABLED, target, policy_id,
        created_after, exclude_saml, exclude_v2_tokens, max_lifetime,
    )
