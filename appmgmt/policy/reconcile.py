"""
Reconciliation of custom policies against the tenant default policy.

A custom policy that does not mention a restriction type exempts its
applications from it. ``reconcile`` makes that explicit by producing the
effective restriction tree of a policy: tenant leaves that a custom policy
omits show up disabled, and leaves without a state show up enabled.
"""

import logging
from typing import Any, List, Optional, Tuple, Union

from appmgmt.policy.errors import MalformedPolicyShape
from appmgmt.policy.models import PolicyDocument, RestrictionState, RestrictionType
from appmgmt.policy.schema import PolicyType, RestrictionPath, iter_paths


logger = logging.getLogger(__name__)


def _with_default_state(leaf: RestrictionType) -> RestrictionType:
    if leaf.state is None:
        return leaf.model_copy(update={"state": RestrictionState.ENABLED})
    return leaf


def _expect(doc: PolicyDocument, policy_type: PolicyType, role: str) -> None:
    if doc.policy_type is not policy_type:
        raise MalformedPolicyShape(
            f"{role} document is a {doc.policy_type.value} policy",
            policy_id=doc.policy_id,
        )


def reconcile(
    policy_type: Union[PolicyType, str],
    tenant: PolicyDocument,
    custom: Optional[PolicyDocument] = None,
) -> PolicyDocument:
    """
    Compute the effective restrictions of a policy.

    Args:
        policy_type: ``TENANT`` to normalize the tenant policy on its own,
            ``CUSTOM`` to resolve a custom policy against the tenant policy.
        tenant: The tenant default policy.
        custom: The custom policy; ``None`` stands for an empty one when
            ``policy_type`` is ``CUSTOM``.

    Returns:
        A document of ``policy_type`` holding one leaf per schema path that
        is present in either input. Tenant leaves are never fabricated.

    Raises:
        MalformedPolicyShape: If an input document has the wrong type.
    """
    ptype = PolicyType(policy_type)
    _expect(tenant, PolicyType.TENANT, "Tenant")

    if ptype is PolicyType.TENANT:
        if custom is not None:
            raise ValueError("A tenant policy is reconciled on its own; drop the custom document")
        result = tenant
        for path, leaf in tenant.leaves():
            normalized = _with_default_state(leaf)
            if normalized is not leaf:
                result = result.with_set(path, normalized)
        return result

    if custom is None:
        custom = PolicyDocument.empty(PolicyType.CUSTOM)
    _expect(custom, PolicyType.CUSTOM, "Custom")

    result = custom
    for path in iter_paths(PolicyType.CUSTOM):
        own = custom.get(path)
        if own is not None:
            effective = _with_default_state(own)
        else:
            inherited = tenant.get(path)
            if inherited is None:
                continue
            effective = inherited.model_copy(update={"state": RestrictionState.DISABLED})
            logger.debug("Policy %s omits %s; tenant leaf becomes disabled", custom.policy_id, path)
        if effective is not own:
            result = result.with_set(path, effective)
    return result


def inherit_from_tenant(tenant: PolicyDocument, **properties: Any) -> PolicyDocument:
    """
    Start a custom policy that restricts exactly like the tenant policy.

    Every application restriction present in the tenant policy is copied,
    with its state made explicit, so that the new policy exempts nothing
    until a leaf is changed.
    """
    _expect(tenant, PolicyType.TENANT, "Tenant")
    doc = PolicyDocument.empty(PolicyType.CUSTOM, **properties)
    for path in iter_paths(PolicyType.CUSTOM):
        leaf = tenant.get(path)
        if leaf is not None:
            doc = doc.with_set(path, _with_default_state(leaf))
    return doc


def effective_states(doc: PolicyDocument) -> List[Tuple[RestrictionPath, Optional[RestrictionState]]]:
    """Flatten a (reconciled) document into ``(path, state)`` rows."""
    return [(path, leaf.state) for path, leaf in doc.leaves()]
