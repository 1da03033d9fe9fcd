"""
Exemption registry.

Keeps the ``excludeActors.customSecurityAttributes`` list of a restriction
leaf free of duplicate ids while adding and removing exemption records.
"""

from typing import Optional, Sequence, Tuple

from appmgmt.policy.errors import DuplicateExemption
from appmgmt.policy.models import ExcludeActors, ExemptionRecord, PolicyDocument, RestrictionType
from appmgmt.policy.schema import RestrictionPath
from appmgmt.policy.setter import set_restriction


def exemption_id(attribute_set: str, attribute_name: str) -> str:
    """Exemption id of a custom security attribute, ``<Set>_<Name>``."""
    return f"{attribute_set}_{attribute_name}"


def _records(doc: PolicyDocument, path: RestrictionPath) -> Tuple[ExemptionRecord, ...]:
    leaf = doc.get(path)
    records = leaf.exemptions if leaf is not None else ()
    seen = set()
    for record in records:
        if record.id in seen:
            raise DuplicateExemption(
                f"Exemption '{record.id}' is listed more than once",
                path=str(path), policy_id=doc.policy_id,
            )
        seen.add(record.id)
    return records


def _find(records: Sequence[ExemptionRecord], csa_id: str) -> Optional[ExemptionRecord]:
    return next((r for r in records if r.id == csa_id), None)


def _with_records(
    doc: PolicyDocument, path: RestrictionPath, records: Sequence[ExemptionRecord]
) -> PolicyDocument:
    leaf = doc.get(path) or RestrictionType()
    actors = leaf.exclude_actors or ExcludeActors()
    actors = actors.model_copy(update={"custom_security_attributes": list(records)})
    return set_restriction(
        doc.policy_type, doc, *path, leaf.model_copy(update={"exclude_actors": actors})
    )


def has_exemption(doc: PolicyDocument, path: RestrictionPath, csa_id: str) -> bool:
    """
    Whether a record with ``csa_id`` exempts actors from the leaf at ``path``.

    Missing containers simply mean ``False``.
    """
    return _find(_records(doc, path), csa_id) is not None


def add_exemption_if_missing(
    doc: PolicyDocument, path: RestrictionPath, record: ExemptionRecord
) -> PolicyDocument:
    """
    Ensure ``record`` is in the exemption list of the leaf at ``path``.

    Returns ``doc`` itself when a record with the same id is already there.
    Missing containers down to the list are created.

    Raises:
        DuplicateExemption: If a record with the same id but another
            operator or value is present.
        InvalidRestrictionPath: If the schema does not declare the path.
    """
    records = _records(doc, path)
    existing = _find(records, record.id)
    if existing is not None:
        if (existing.operator, existing.value) != (record.operator, record.value):
            raise DuplicateExemption(
                f"Exemption '{record.id}' already exists with value '{existing.value}'",
                path=str(path), policy_id=doc.policy_id,
            )
        return doc
    return _with_records(doc, path, [*records, record])


def remove_exemption(doc: PolicyDocument, path: RestrictionPath, csa_id: str) -> PolicyDocument:
    """Drop the record with ``csa_id``; ``doc`` itself when there is none."""
    records = _records(doc, path)
    if _find(records, csa_id) is None:
        return doc
    return _with_records(doc, path, [r for r in records if r.id != csa_id])
