"""
Application management policy engine.

This package provides the pure core shared by every command:
- Restriction schema and path validation
- Policy document model
- Reconciliation of custom policies against the tenant policy
- Targeted single-leaf updates and the exemption registry
- Write payload sanitization and write intents
"""

from .errors import (
    ErrorKind, PolicyError, InvalidRestrictionPath, DuplicateExemption,
    MalformedPolicyShape
)
from .schema import (
    PolicyType, RestrictionShape, RestrictionPath, shape_of, valid_type_names,
    is_valid_path, validate_path, iter_paths
)
from .models import (
    PolicyDocument, RestrictionType, RestrictionState, ExemptionRecord,
    ExcludeActors, Principal, PrincipalKind
)
from .reconcile import reconcile, inherit_from_tenant, effective_states
from .setter import set_restriction, update_restriction
from .sanitize import sanitize, write_payload
from .exemptions import (
    has_exemption, add_exemption_if_missing, remove_exemption, exemption_id
)

__all__ = [
    "ErrorKind", "PolicyError", "InvalidRestrictionPath", "DuplicateExemption",
    "MalformedPolicyShape", "PolicyType", "RestrictionShape", "RestrictionPath",
    "shape_of", "valid_type_names", "is_valid_path", "validate_path", "iter_paths",
    "PolicyDocument", "RestrictionType", "RestrictionState", "ExemptionRecord",
    "ExcludeActors", "Principal", "PrincipalKind", "reconcile",
    "inherit_from_tenant", "effective_states", "set_restriction",
    "update_restriction", "sanitize", "write_payload", "has_exemption",
    "add_exemption_if_missing", "remove_exemption", "exemption_id"
]
