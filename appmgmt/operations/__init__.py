"""
Policy commands.

Planners turn a requested change into write intents, the executor applies
or logs them, and the audit reports effective restrictions.
"""

from .audit import AuditRow, audit, audit_custom, audit_tenant
from .executor import IntentExecutor
from .plans import (
    ExemptionAttribute, PrincipalNotFound, RestrictionOptions,
    plan_grant_app_exemption, plan_grant_caller_exemption,
    plan_revoke_app_exemption, plan_revoke_caller_exemption,
    plan_set_restriction_state
)

__all__ = [
    "AuditRow", "audit", "audit_custom", "audit_tenant", "IntentExecutor",
    "ExemptionAttribute", "PrincipalNotFound", "RestrictionOptions",
    "plan_grant_app_exemption", "plan_grant_caller_exemption",
    "plan_revoke_app_exemption", "plan_revoke_caller_exemption",
    "plan_set_restriction_state"
]
