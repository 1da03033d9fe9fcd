import click

from appmgmt.operations.plans import (
    ExemptionAttribute, plan_grant_app_exemption, plan_grant_caller_exemption,
    plan_revoke_app_exemption, plan_revoke_caller_exemption,
)
from appmgmt.policy.models import PrincipalKind
from .utils import get_settings_obj, handle_async_command, parse_path, print_plan, run_planner


@click.group(name='app-exemption')
def app_exemption_cli():
    """Exempt single applications through custom policies."""
    pass


@app_exemption_cli.command()
@click.argument('app_id')
@click.argument('target', callback=parse_path)
@click.pass_context
@handle_async_command
async def grant(ctx, app_id: str, target) -> None:
    """Exempts application APP_ID (object id) from TARGET."""
    plan, results = await run_planner(get_settings_obj(ctx), plan_grant_app_exemption, app_id, target)
    print_plan(plan, results)


@app_exemption_cli.command()
@click.argument('app_id')
@click.argument('target', callback=parse_path)
@click.pass_context
@handle_async_command
async def revoke(ctx, app_id: str, target) -> None:
    """Makes application APP_ID follow the tenant policy for TARGET again."""
    plan, results = await run_planner(get_settings_obj(ctx), plan_revoke_app_exemption, app_id, target)
    print_plan(plan, results)


@click.group(name='caller-exemption')
def caller_exemption_cli():
    """Exempt users and service principals through custom security attributes."""
    pass


_PRINCIPAL_TYPE = click.Choice([k.value for k in PrincipalKind])


def _attribute(ctx, attribute_set, attribute_name, value) -> ExemptionAttribute:
    defaults = ExemptionAttribute.from_settings(get_settings_obj(ctx))
    return ExemptionAttribute(
        attribute_set=attribute_set or defaults.attribute_set,
        attribute_name=attribute_name or defaults.attribute_name,
        value=value or defaults.value,
    )


_ATTRIBUTE_OPTIONS = [
    click.option('--principal-type', type=_PRINCIPAL_TYPE, default=PrincipalKind.USER.value, show_default=True),
    click.option('--attribute-set', help='Custom security attribute set.'),
    click.option('--attribute-name', help='Custom security attribute name.'),
    click.option('--value', help='Attribute value granting the exemption.'),
]


def attribute_options(func):
    """Options shared by grant and revoke."""
    for decorator in reversed(_ATTRIBUTE_OPTIONS):
        func = decorator(func)
    return func


@caller_exemption_cli.command(name='grant')
@click.argument('principal_id')
@click.argument('target', callback=parse_path)
@attribute_options
@click.pass_context
@handle_async_command
async def grant_caller(ctx, principal_id, target, principal_type, attribute_set, attribute_name, value) -> None:
    """Exempts PRINCIPAL_ID from the tenant restriction TARGET."""
    plan, results = await run_planner(
        get_settings_obj(ctx),
        plan_grant_caller_exemption,
        PrincipalKind(principal_type),
        principal_id,
        target,
        _attribute(ctx, attribute_set, attribute_name, value),
    )
    print_plan(plan, results)


@caller_exemption_cli.command(name='revoke')
@click.argument('principal_id')
@click.argument('target', callback=parse_path)
@attribute_options
@click.option('--remove-record', is_flag=True, help='Also drop the exemption from the tenant policy.')
@click.pass_context
@handle_async_command
async def revoke_caller(ctx, principal_id, target, principal_type, attribute_set, attribute_name, value,
                        remove_record) -> None:
    """Removes the exemption attribute from PRINCIPAL_ID."""
    plan, results = await run_planner(
        get_settings_obj(ctx),
        plan_revoke_caller_exemption,
        PrincipalKind(principal_type),
        principal_id,
        target,
        _attribute(ctx, attribute_set, attribute_name, value),
        remove_record=remove_record,
    )
    print_plan(plan, results)
