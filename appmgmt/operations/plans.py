"""
Planners for the policy commands.

Each planner fetches fresh documents, runs the pure engine on them and
returns a ``Plan`` of write intents. Planners never write; a change that
is already in place yields an empty plan.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from appmgmt.config import Settings
from appmgmt.graph.client import GraphDirectoryClient
from appmgmt.policy.exemptions import (
    add_exemption_if_missing, exemption_id, has_exemption, remove_exemption,
)
from appmgmt.policy.intents import (
    AssignAttribute, CreateAttributeDefinition, CreateAttributeSet,
    CreateCustomPolicy, Plan, WriteIntent, save_policy_intent,
)
from appmgmt.policy.models import (
    ExemptionRecord, PolicyDocument, Principal, PrincipalKind, RestrictionState,
    RestrictionType,
)
from appmgmt.policy.reconcile import inherit_from_tenant, reconcile
from appmgmt.policy.sanitize import write_payload
from appmgmt.policy.schema import PolicyType, RestrictionPath, validate_path
from appmgmt.policy.setter import set_restriction, update_restriction


logger = logging.getLogger(__name__)


class PrincipalNotFound(Exception):
    """The principal to exempt does not exist in the directory."""

    def __init__(self, kind: PrincipalKind, principal_id: str):
        super().__init__(f"{PrincipalKind(kind).value} '{principal_id}' not found")
        self.kind = kind
        self.principal_id = principal_id


@dataclass
class RestrictionOptions:
    """Optional modifiers applied together with a state change."""
    restrict_for_apps_created_after: Optional[datetime] = None
    exclude_saml: Optional[bool] = None
    exclude_apps_receiving_v2_tokens: Optional[bool] = None
    max_lifetime: Optional[str] = None

    def changes(self) -> dict:
        values = {
            "restrict_for_apps_created_after_date_time": self.restrict_for_apps_created_after,
            "exclude_saml": self.exclude_saml,
            "exclude_apps_receiving_v2_tokens": self.exclude_apps_receiving_v2_tokens,
            "max_lifetime": self.max_lifetime,
        }
        return {k: v for k, v in values.items() if v is not None}


@dataclass
class ExemptionAttribute:
    """Custom security attribute whose value exempts its bearer."""
    attribute_set: str
    attribute_name: str
    value: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExemptionAttribute":
        return cls(
            attribute_set=settings.EXEMPTION_ATTRIBUTE_SET,
            attribute_name=settings.EXEMPTION_ATTRIBUTE_NAME,
            value=settings.EXEMPTION_ATTRIBUTE_VALUE,
        )

    @property
    def id(self) -> str:
        return exemption_id(self.attribute_set, self.attribute_name)

    def record(self) -> ExemptionRecord:
        return ExemptionRecord(id=self.id, value=self.value)


def _plan(summary: str, intents: List[Optional[WriteIntent]], notes: Optional[List[str]] = None) -> Plan:
    return Plan(summary=summary, intents=[i for i in intents if i is not None], notes=notes or [])


async def _assigned_policy(client: GraphDirectoryClient, app_id: str) -> Optional[PolicyDocument]:
    assigned = await client.fetch_app_policies(app_id)
    if not assigned:
        return None
    if len(assigned) > 1:
        logger.warning("Application %s has %d custom policies; using the first", app_id, len(assigned))
    return await client.fetch_policy(PolicyType.CUSTOM, assigned[0].policy_id)


async def plan_set_restriction_state(
    client: GraphDirectoryClient,
    path: RestrictionPath,
    state: RestrictionState,
    options: Optional[RestrictionOptions] = None,
    policy_id: Optional[str] = None,
) -> Plan:
    """
    Enable or disable one restriction in the tenant policy, or in a custom
    policy when ``policy_id`` is given.

    Exemptions and other modifiers of the leaf are preserved. Enabling a
    tenant restriction also enables the tenant policy itself.
    """
    ptype = PolicyType.CUSTOM if policy_id else PolicyType.TENANT
    validate_path(ptype, path)
    state = RestrictionState(state)
    before = await client.fetch_policy(ptype, policy_id)

    changes = (options or RestrictionOptions()).changes()
    after = update_restriction(ptype, before, path, state=state, **changes)

    notes: List[str] = []
    if ptype is PolicyType.TENANT and state is RestrictionState.ENABLED and before.get_property("isEnabled") is not True:
        after = after.with_properties(isEnabled=True)
        notes.append("The tenant policy is disabled and will be enabled.")

    summary = f"{path} -> {state.value}"
    intent = save_policy_intent(before, after, summary)
    if intent is None:
        notes.append(f"{path} is already {state.value}.")
    return _plan(summary, [intent], notes)


async def plan_grant_app_exemption(
    client: GraphDirectoryClient, app_id: str, path: RestrictionPath
) -> Plan:
    """
    Exempt one application from a restriction.

    The restriction is disabled in the custom policy assigned to the
    application. Without one, a custom policy mirroring the tenant policy
    is created with only this restriction disabled, and assigned.
    """
    validate_path(PolicyType.CUSTOM, path)
    tenant = await client.fetch_policy(PolicyType.TENANT)
    summary = f"Exempt application {app_id} from {path}"

    policy = await _assigned_policy(client, app_id)
    if policy is None:
        created = inherit_from_tenant(
            tenant,
            displayName=f"Exemption for application {app_id}",
            description=f"Created to exempt application {app_id} from {path}",
            isEnabled=True,
        )
        created = update_restriction(PolicyType.CUSTOM, created, path, state=RestrictionState.DISABLED)
        intent = CreateCustomPolicy(
            payload=write_payload(PolicyType.CUSTOM, created),
            assign_to_app=app_id,
            summary=f"{path} -> disabled",
        )
        return _plan(summary, [intent])

    effective = reconcile(PolicyType.CUSTOM, tenant, policy).get(path) or RestrictionType()
    leaf = effective.model_copy(update={"state": RestrictionState.DISABLED})
    after = set_restriction(PolicyType.CUSTOM, policy, *path, leaf)
    intent = save_policy_intent(policy, after, f"{path} -> disabled")
    notes = [] if intent else [f"Application {app_id} is already exempt from {path}."]
    return _plan(summary, [intent], notes)


async def plan_revoke_app_exemption(
    client: GraphDirectoryClient, app_id: str, path: RestrictionPath
) -> Plan:
    """
    Make one application follow the tenant policy for a restriction again.

    The leaf of the assigned custom policy is replaced by the tenant leaf.
    """
    validate_path(PolicyType.CUSTOM, path)
    summary = f"Revoke exemption of application {app_id} from {path}"
    policy = await _assigned_policy(client, app_id)
    if policy is None:
        return _plan(summary, [], [f"No custom policy is assigned to application {app_id}."])

    tenant = await client.fetch_policy(PolicyType.TENANT)
    leaf = reconcile(PolicyType.TENANT, tenant).get(path)
    notes: List[str] = []
    if leaf is None:
        notes.append(f"The tenant policy does not define {path}; enabling it explicitly.")
        leaf = RestrictionType(state=RestrictionState.ENABLED)

    after = set_restriction(PolicyType.CUSTOM, policy, *path, leaf)
    intent = save_policy_intent(policy, after, f"{path} -> {leaf.state.value} (tenant)")
    if intent is None:
        notes.append(f"Application {app_id} already follows the tenant policy for {path}.")
    return _plan(summary, [intent], notes)


async def _require_principal(client: GraphDirectoryClient, kind: PrincipalKind, principal_id: str) -> Principal:
    principal = await client.fetch_principal(kind, principal_id)
    if principal is None:
        raise PrincipalNotFound(kind, principal_id)
    return principal


async def plan_grant_caller_exemption(
    client: GraphDirectoryClient,
    kind: PrincipalKind,
    principal_id: str,
    path: RestrictionPath,
    attribute: ExemptionAttribute,
) -> Plan:
    """
    Exempt a user or service principal from a tenant restriction.

    Ensures the exemption attribute exists, assigns it to the principal and
    lists it among the excluded actors of the tenant leaf. A leaf the tenant
    policy does not define is added disabled, since a leaf without a state
    would restrict everybody else.
    """
    validate_path(PolicyType.TENANT, path)
    principal = await _require_principal(client, kind, principal_id)
    tenant = await client.fetch_policy(PolicyType.TENANT)

    notes: List[str] = []
    base = tenant
    if tenant.get(path) is None:
        base = set_restriction(PolicyType.TENANT, tenant, *path, RestrictionType(state=RestrictionState.DISABLED))
        notes.append(f"The tenant policy does not define {path}; it is added disabled.")

    after = add_exemption_if_missing(base, path, attribute.record())
    if after is tenant:
        notes.append(f"{path} already exempts bearers of '{attribute.id}'.")

    intents: List[Optional[WriteIntent]] = [
        CreateAttributeSet(attribute_set=attribute.attribute_set),
        CreateAttributeDefinition(
            attribute_set=attribute.attribute_set,
            attribute_name=attribute.attribute_name,
            allowed_value=attribute.value,
        ),
        AssignAttribute(
            principal=principal,
            attribute_set=attribute.attribute_set,
            attribute_name=attribute.attribute_name,
            value=attribute.value,
        ),
        save_policy_intent(tenant, after, f"exempt '{attribute.id}' from {path}"),
    ]
    return _plan(f"Exempt {principal.kind.value} {principal.id} from {path}", intents, notes)


async def plan_revoke_caller_exemption(
    client: GraphDirectoryClient,
    kind: PrincipalKind,
    principal_id: str,
    path: RestrictionPath,
    attribute: ExemptionAttribute,
    remove_record: bool = False,
) -> Plan:
    """
    Remove a principal's exemption attribute.

    With ``remove_record`` the exemption is also dropped from the tenant
    leaf, which revokes it for every other bearer as well.
    """
    validate_path(PolicyType.TENANT, path)
    principal = await _require_principal(client, kind, principal_id)
    intents: List[Optional[WriteIntent]] = [
        AssignAttribute(
            principal=principal,
            attribute_set=attribute.attribute_set,
            attribute_name=attribute.attribute_name,
            value=None,
        ),
    ]
    notes: List[str] = []
    if remove_record:
        tenant = await client.fetch_policy(PolicyType.TENANT)
        if not has_exemption(tenant, path, attribute.id):
            notes.append(f"{path} does not list '{attribute.id}'.")
        after = remove_exemption(tenant, path, attribute.id)
        intents.append(save_policy_intent(tenant, after, f"remove '{attribute.id}' from {path}"))
    return _plan(f"Revoke exemption of {principal.kind.value} {principal.id} from {path}", intents, notes)
