"""
Audit of effective restrictions.

Reports, for the tenant policy and each selected custom policy, the state
every restriction actually has once inheritance is resolved.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from appmgmt.graph.client import DirectoryError, GraphDirectoryClient
from appmgmt.policy.errors import PolicyError
from appmgmt.policy.models import PolicyDocument
from appmgmt.policy.reconcile import reconcile
from appmgmt.policy.schema import PolicyType


logger = logging.getLogger(__name__)


class AuditRow(BaseModel):
    """Effective state of one restriction in one policy."""
    policy_type: PolicyType
    policy_id: Optional[str] = None
    display_name: Optional[str] = None
    path: Optional[str] = Field(default=None, description="group.category.type")
    state: Optional[str] = None
    inherited: bool = Field(default=False, description="Derived from the tenant policy")
    exemptions: List[str] = Field(default_factory=list, description="Exempted attribute ids")
    error: Optional[str] = None


def audit_tenant(tenant: PolicyDocument) -> List[AuditRow]:
    effective = reconcile(PolicyType.TENANT, tenant)
    return [
        AuditRow(
            policy_type=PolicyType.TENANT,
            policy_id=tenant.policy_id,
            display_name=tenant.get_property("displayName"),
            path=str(path),
            state=leaf.state.value if leaf.state else None,
            exemptions=[r.id for r in leaf.exemptions],
        )
        for path, leaf in effective.leaves()
    ]


def audit_custom(tenant: PolicyDocument, custom: PolicyDocument) -> List[AuditRow]:
    effective = reconcile(PolicyType.CUSTOM, tenant, custom)
    return [
        AuditRow(
            policy_type=PolicyType.CUSTOM,
            policy_id=custom.policy_id,
            display_name=custom.get_property("displayName"),
            path=str(path),
            state=leaf.state.value if leaf.state else None,
            inherited=custom.get(path) is None,
            exemptions=[r.id for r in leaf.exemptions],
        )
        for path, leaf in effective.leaves()
    ]


def _error_row(data: Dict[str, Any], error: Union[PolicyError, DirectoryError]) -> AuditRow:
    logger.error("Cannot audit custom policy %s: %s", data.get("id"), error)
    return AuditRow(
        policy_type=PolicyType.CUSTOM,
        policy_id=data.get("id"),
        display_name=data.get("displayName"),
        path=getattr(error, "path", "") or None,
        error=str(error),
    )


async def audit(
    client: GraphDirectoryClient,
    policy_ids: Sequence[str] = (),
    include_all: bool = False,
) -> List[AuditRow]:
    """
    Audit the tenant policy and the selected custom policies.

    A custom policy that cannot be fetched or reconciled yields a single
    error row and the audit moves on to the next one. A failure to fetch
    the tenant policy aborts the audit.
    """
    tenant = await client.fetch_policy(PolicyType.TENANT)
    rows = audit_tenant(tenant)

    if include_all:
        for data in await client.list_custom_policies():
            try:
                rows.extend(audit_custom(tenant, PolicyDocument.from_wire(PolicyType.CUSTOM, data)))
            except PolicyError as e:
                rows.append(_error_row(data, e))
        return rows

    for policy_id in policy_ids:
        try:
            custom = await client.fetch_policy(PolicyType.CUSTOM, policy_id)
            rows.extend(audit_custom(tenant, custom))
        except (PolicyError, DirectoryError) as e:
            rows.append(_error_row({"id": policy_id}, e))
    return rows
