"""
Write payload sanitizer.

The directory decorates policies it returns with OData annotations and
accepts none of them back. Some tenants also reject an ``audiences`` object
that carries no restriction.
"""

from typing import Any, Dict, Union

from appmgmt.policy.models import PolicyDocument, RestrictionType
from appmgmt.policy.schema import PolicyType, category_names, group_names
from appmgmt.policy.setter import ensure_policy_type


ODATA_CONTEXT_SUFFIX = "@odata.context"
AUDIENCES = "audiences"

# Populated by the directory, rejected on write.
READ_ONLY_FIELDS = ("id", "deletedDateTime")


def _strip_context(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: _strip_context(item) for key, item in value.items()
            if not key.endswith(ODATA_CONTEXT_SUFFIX)
        }
    if isinstance(value, list):
        return [_strip_context(item) for item in value]
    return value


def _populated(leaf: Any) -> bool:
    return isinstance(leaf, RestrictionType) and bool(leaf.to_wire())


def sanitize(policy_type: Union[PolicyType, str], doc: PolicyDocument) -> PolicyDocument:
    """
    Remove what the directory returns but refuses on write.

    Drops every key ending in ``@odata.context`` (credential lists, the
    exemption lists and their sibling annotations included) and removes
    ``audiences`` when none of its restrictions is populated. Applying it
    twice gives the same document as applying it once.
    """
    ptype = ensure_policy_type(policy_type, doc)
    cleaned = PolicyDocument.from_wire(ptype, _strip_context(doc.to_wire()))

    for group in group_names(ptype):
        if AUDIENCES not in category_names(ptype, group):
            continue
        if not cleaned.has_category(group, AUDIENCES):
            continue
        leaves = cleaned.category(group, AUDIENCES).values()
        if not any(_populated(leaf) for leaf in leaves):
            cleaned = cleaned.without_category(group, AUDIENCES)
    return cleaned


def write_payload(policy_type: Union[PolicyType, str], doc: PolicyDocument) -> Dict[str, Any]:
    """Sanitized wire body for a PATCH or POST of ``doc``."""
    payload = sanitize(policy_type, doc).to_wire()
    for field in READ_ONLY_FIELDS:
        payload.pop(field, None)
    return payload
