"""
Targeted restriction setter.

Applies a single-leaf update to a policy document without touching sibling
restriction types, categories or groups.
"""

from typing import Any, Union

from appmgmt.policy.errors import MalformedPolicyShape
from appmgmt.policy.models import PolicyDocument, RestrictionType
from appmgmt.policy.schema import PolicyType, RestrictionPath, RestrictionShape, shape_of, validate_path


def ensure_policy_type(policy_type: Union[PolicyType, str], doc: PolicyDocument) -> PolicyType:
    ptype = PolicyType(policy_type)
    if doc.policy_type is not ptype:
        raise MalformedPolicyShape(
            f"Expected a {ptype.value} policy, got a {doc.policy_type.value} policy",
            policy_id=doc.policy_id,
        )
    return ptype


def set_restriction(
    policy_type: Union[PolicyType, str],
    doc: PolicyDocument,
    app_restrictions: str,
    restriction: str,
    type_name: str,
    new_value: RestrictionType,
) -> PolicyDocument:
    """
    Set one restriction leaf.

    Args:
        policy_type: Policy type the document must have.
        doc: Document to update; it is left untouched.
        app_restrictions: Restriction group, e.g. ``applicationRestrictions``.
        restriction: Category, e.g. ``identifierUris``.
        type_name: Restriction type, e.g. ``nonDefaultUriAddition``.
        new_value: Leaf to store at the path.

    Returns:
        The updated document.

    Raises:
        InvalidRestrictionPath: If the schema does not declare the path.
        MalformedPolicyShape: If ``doc`` is not of ``policy_type``.
    """
    ptype = ensure_policy_type(policy_type, doc)
    path = validate_path(ptype, RestrictionPath(app_restrictions, restriction, type_name))
    # Tagged leaves carry their own type name.
    tagged = shape_of(ptype, app_restrictions, restriction) is RestrictionShape.TAGGED
    if tagged and new_value.restriction_type != type_name:
        new_value = new_value.model_copy(update={"restriction_type": type_name})
    if doc.get(path) == new_value:
        return doc
    return doc.with_set(path, new_value)


def update_restriction(
    policy_type: Union[PolicyType, str],
    doc: PolicyDocument,
    path: RestrictionPath,
    **changes: Any,
) -> PolicyDocument:
    """
    Merge field changes into one leaf, creating it when absent.

    Keyword names are the snake_case field names of ``RestrictionType``;
    a value of ``None`` removes the field. Fields not named are preserved,
    so exemptions and dates survive a state change.
    """
    ptype = ensure_policy_type(policy_type, doc)
    validate_path(ptype, path)
    current = doc.get(path) or RestrictionType()
    data = current.model_dump(exclude_none=True)
    for name, value in changes.items():
        if value is None:
            data.pop(name, None)
        else:
            data[name] = value
    return set_restriction(ptype, doc, *path, RestrictionType.model_validate(data))
