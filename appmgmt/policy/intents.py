"""
Write intents.

Mutating operations never write. They describe the writes they need as
intent values, which an executor later applies through the directory
client or only logs in dry-run mode.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from appmgmt.policy.models import PolicyDocument, Principal
from appmgmt.policy.sanitize import write_payload
from appmgmt.policy.schema import PolicyType


class SavePolicy(BaseModel):
    """Replace the restrictions of an existing policy."""
    kind: Literal["save_policy"] = "save_policy"
    policy_type: PolicyType = Field(description="Tenant or custom policy")
    policy_id: Optional[str] = Field(default=None, description="Custom policy id")
    payload: Dict[str, Any] = Field(description="Sanitized PATCH body")
    summary: str = Field(description="Human-readable change summary")

    def describe(self) -> str:
        target = "tenant policy" if self.policy_type is PolicyType.TENANT else f"custom policy {self.policy_id}"
        return f"Update {target}: {self.summary}"


class CreateCustomPolicy(BaseModel):
    """Create a custom policy, optionally assigning it to one application."""
    kind: Literal["create_custom_policy"] = "create_custom_policy"
    payload: Dict[str, Any] = Field(description="Sanitized POST body")
    assign_to_app: Optional[str] = Field(default=None, description="Application object id")
    summary: str = Field(description="Human-readable change summary")

    def describe(self) -> str:
        name = self.payload.get("displayName", "custom policy")
        suffix = f" and assign it to application {self.assign_to_app}" if self.assign_to_app else ""
        return f"Create '{name}'{suffix}: {self.summary}"


class AssignPolicy(BaseModel):
    """Assign an existing custom policy to an application."""
    kind: Literal["assign_policy"] = "assign_policy"
    app_id: str = Field(description="Application object id")
    policy_id: str = Field(description="Custom policy id")

    def describe(self) -> str:
        return f"Assign custom policy {self.policy_id} to application {self.app_id}"


class CreateAttributeSet(BaseModel):
    """Ensure a custom security attribute set exists."""
    kind: Literal["create_attribute_set"] = "create_attribute_set"
    attribute_set: str
    description: str = "Exemptions from application management restrictions"

    def describe(self) -> str:
        return f"Ensure attribute set '{self.attribute_set}'"


class CreateAttributeDefinition(BaseModel):
    """Ensure a string attribute with one allowed value exists."""
    kind: Literal["create_attribute_definition"] = "create_attribute_definition"
    attribute_set: str
    attribute_name: str
    allowed_value: str
    description: str = "Exempts the bearer from an application management restriction"

    def describe(self) -> str:
        return (
            f"Ensure attribute '{self.attribute_set}.{self.attribute_name}' "
            f"allowing '{self.allowed_value}'"
        )


class AssignAttribute(BaseModel):
    """Set, or clear with ``value=None``, a principal's attribute value."""
    kind: Literal["assign_attribute"] = "assign_attribute"
    principal: Principal
    attribute_set: str
    attribute_name: str
    value: Optional[str] = None

    def describe(self) -> str:
        who = f"{self.principal.kind.value} {self.principal.id}"
        attr = f"{self.attribute_set}.{self.attribute_name}"
        if self.value is None:
            return f"Clear '{attr}' on {who}"
        return f"Set '{attr}' = '{self.value}' on {who}"


WriteIntent = Annotated[
    Union[
        SavePolicy, CreateCustomPolicy, AssignPolicy,
        CreateAttributeSet, CreateAttributeDefinition, AssignAttribute,
    ],
    Field(discriminator="kind"),
]


class Plan(BaseModel):
    """Writes an operation needs, in execution order."""
    summary: str = Field(description="What the operation does")
    intents: List[WriteIntent] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list, description="Warnings for the operator")

    @property
    def is_noop(self) -> bool:
        return not self.intents


class IntentResult(BaseModel):
    """Outcome of one intent."""
    intent: WriteIntent
    applied: bool = Field(description="False in dry-run mode")
    detail: str = Field(description="Human-readable outcome")
    data: Optional[Dict[str, Any]] = Field(default=None, description="Directory response")


def save_policy_intent(
    before: PolicyDocument, after: PolicyDocument, summary: str
) -> Optional[SavePolicy]:
    """
    Build the intent persisting ``after``, or ``None`` when nothing changed.

    Both documents are compared in their sanitized write form, so OData
    annotations alone never cause a write.
    """
    payload = write_payload(after.policy_type, after)
    if payload == write_payload(before.policy_type, before):
        return None
    return SavePolicy(
        policy_type=after.policy_type,
        policy_id=after.policy_id if after.policy_type is PolicyType.CUSTOM else None,
        payload=payload,
        summary=summary,
    )
