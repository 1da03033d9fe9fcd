"""
Policy document model.

Pydantic value objects for restriction leaves and exemption records, and
the ``PolicyDocument`` container that holds a tenant or custom application
management policy. Tagged credential lists are decoded into ordered
mappings keyed by ``restrictionType`` so that both category shapes are
addressed the same way; the list form only exists on the wire.
"""

from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from appmgmt.policy.errors import MalformedPolicyShape
from appmgmt.policy.schema import (
    TAG_FIELD, PolicyType, RestrictionPath, RestrictionShape, category_names,
    category_schema, container_key, group_for_key, iter_paths, validate_path,
)


EXEMPTION_ODATA_TYPE = "#microsoft.graph.customSecurityAttributeStringValueExemption"


class RestrictionState(str, Enum):
    """Restriction enforcement state."""
    ENABLED = "enabled"
    DISABLED = "disabled"


class PrincipalKind(str, Enum):
    """Directory object kinds that can carry an exemption attribute."""
    USER = "user"
    SERVICE_PRINCIPAL = "servicePrincipal"


# ===== Leaf Models =====

class ExemptionRecord(BaseModel):
    """Custom security attribute value whose bearers are exempt from a restriction."""
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    odata_type: str = Field(default=EXEMPTION_ODATA_TYPE, alias="@odata.type")
    id: str = Field(min_length=1, description="Attribute id: <AttributeSet>_<AttributeName>")
    operator: Literal["equals"] = Field(default="equals", description="Comparison operator")
    value: str = Field(description="Attribute value granting the exemption")


class ExcludeActors(BaseModel):
    """Actors excluded from a restriction."""
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    custom_security_attributes: Optional[List[ExemptionRecord]] = Field(
        default=None, alias="customSecurityAttributes"
    )


class RestrictionType(BaseModel):
    """One restriction leaf: a state plus its modifiers."""
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    state: Optional[RestrictionState] = Field(default=None, description="Enforcement state")
    restriction_type: Optional[str] = Field(
        default=None, alias="restrictionType", description="Tag of tagged list elements"
    )
    max_lifetime: Optional[str] = Field(default=None, alias="maxLifetime")
    restrict_for_apps_created_after_date_time: Optional[datetime] = Field(
        default=None, alias="restrictForAppsCreatedAfterDateTime"
    )
    exclude_apps_receiving_v2_tokens: Optional[bool] = Field(
        default=None, alias="excludeAppsReceivingV2Tokens"
    )
    exclude_saml: Optional[bool] = Field(default=None, alias="excludeSaml")
    exclude_actors: Optional[ExcludeActors] = Field(default=None, alias="excludeActors")

    @property
    def exemptions(self) -> Tuple[ExemptionRecord, ...]:
        """Exemption records of this leaf, empty when none are configured."""
        if self.exclude_actors is None or not self.exclude_actors.custom_security_attributes:
            return ()
        return tuple(self.exclude_actors.custom_security_attributes)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Principal(BaseModel):
    """A user or service principal known to the directory."""
    model_config = ConfigDict(populate_by_name=True)

    kind: PrincipalKind
    id: str
    display_name: Optional[str] = Field(default=None, alias="displayName")


# ===== Policy Document =====

Tree = Dict[str, Any]


def _decode_leaf(value: Any, where: str) -> Optional[RestrictionType]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise MalformedPolicyShape(
            f"Expected an object, got {type(value).__name__}", path=where
        )
    try:
        return RestrictionType.model_validate(value)
    except ValidationError as e:
        raise MalformedPolicyShape(f"Invalid restriction: {e.errors()[0]['msg']}", path=where) from e


def _decode_category(shape: RestrictionShape, type_names: Tuple[str, ...], value: Any, where: str) -> Any:
    if value is None:
        return None
    if shape is RestrictionShape.KEYED:
        if not isinstance(value, dict):
            raise MalformedPolicyShape(
                f"Expected an object, got {type(value).__name__}", path=where
            )
        return {
            key: _decode_leaf(item, f"{where}.{key}") if key in type_names else item
            for key, item in value.items()
        }

    if not isinstance(value, list):
        raise MalformedPolicyShape(f"Expected a list, got {type(value).__name__}", path=where)
    entries: Dict[str, RestrictionType] = {}
    for i, item in enumerate(value):
        tag = item.get(TAG_FIELD) if isinstance(item, dict) else None
        if not isinstance(tag, str) or not tag:
            raise MalformedPolicyShape(f"Element {i} has no {TAG_FIELD}", path=where)
        if tag in entries:
            raise MalformedPolicyShape(f"Duplicate {TAG_FIELD} '{tag}'", path=where)
        entries[tag] = _decode_leaf(item, f"{where}.{tag}")
    return entries


def _encode_category(shape: RestrictionShape, value: Any) -> Any:
    if value is None:
        return None
    if shape is RestrictionShape.KEYED:
        return {
            key: item.to_wire() if isinstance(item, RestrictionType) else item
            for key, item in value.items()
        }
    elements = []
    for tag, leaf in value.items():
        wire = leaf.to_wire()
        wire[TAG_FIELD] = tag
        elements.append(wire)
    return elements


class PolicyDocument:
    """
    A tenant or custom application management policy.

    Documents are values: every operation returns a new document and never
    mutates the receiver. Unchanged containers are shared between the old
    and the new document, so the underlying dictionaries must be treated as
    read-only.
    """

    __slots__ = ("policy_type", "_root")

    def __init__(self, policy_type: Union[PolicyType, str], root: Optional[Tree] = None):
        self.policy_type = PolicyType(policy_type)
        self._root: Tree = root if root is not None else {}

    # ----- construction -----

    @classmethod
    def empty(cls, policy_type: Union[PolicyType, str], **properties: Any) -> "PolicyDocument":
        return cls(policy_type, dict(properties))

    @classmethod
    def from_wire(cls, policy_type: Union[PolicyType, str], data: Mapping[str, Any]) -> "PolicyDocument":
        """
        Decode a document as returned by the directory.

        Unknown keys are carried through untouched. Containers the schema
        declares are checked against their declared shape.

        Raises:
            MalformedPolicyShape: If a declared container has the wrong type.
        """
        ptype = PolicyType(policy_type)
        if not isinstance(data, Mapping):
            raise MalformedPolicyShape(f"Expected an object, got {type(data).__name__}")

        root: Tree = {}
        for key, value in data.items():
            group = group_for_key(ptype, key)
            if group is None or value is None:
                root[key] = value
                continue
            if not isinstance(value, dict):
                raise MalformedPolicyShape(
                    f"Expected an object, got {type(value).__name__}", path=key,
                    policy_id=data.get("id"),
                )
            declared = category_names(ptype, group)
            decoded: Tree = {}
            for name, item in value.items():
                if name not in declared:
                    decoded[name] = item
                    continue
                schema = category_schema(ptype, group, name)
                try:
                    decoded[name] = _decode_category(schema.shape, schema.type_names, item, f"{group}.{name}")
                except MalformedPolicyShape as e:
                    e.policy_id = data.get("id")
                    raise
            root[key] = decoded
        return cls(ptype, root)

    def to_wire(self) -> Dict[str, Any]:
        """Encode the document back to its wire form."""
        wire: Dict[str, Any] = {}
        for key, value in self._root.items():
            group = group_for_key(self.policy_type, key)
            if group is None or not isinstance(value, dict):
                wire[key] = value
                continue
            declared = category_names(self.policy_type, group)
            wire[key] = {
                name: _encode_category(category_schema(self.policy_type, group, name).shape, item)
                if name in declared else item
                for name, item in value.items()
            }
        return wire

    # ----- reads -----

    @property
    def policy_id(self) -> Optional[str]:
        return self._root.get("id")

    @property
    def properties(self) -> Dict[str, Any]:
        """Top-level fields that are not restriction groups."""
        return {
            key: value for key, value in self._root.items()
            if group_for_key(self.policy_type, key) is None
        }

    def get_property(self, name: str, default: Any = None) -> Any:
        return self.properties.get(name, default)

    def _category_node(self, app_restrictions: str, restriction: str) -> Optional[Dict[str, Any]]:
        group = self._root.get(container_key(self.policy_type, app_restrictions))
        if not isinstance(group, dict):
            return None
        node = group.get(restriction)
        return node if isinstance(node, dict) else None

    def has_category(self, app_restrictions: str, restriction: str) -> bool:
        """Whether the category key is present at all, even as ``null``."""
        category_schema(self.policy_type, app_restrictions, restriction)
        group = self._root.get(container_key(self.policy_type, app_restrictions))
        return isinstance(group, dict) and restriction in group

    def category(self, app_restrictions: str, restriction: str) -> Mapping[str, RestrictionType]:
        """
        Present leaves of one category, keyed by restriction type name.

        For tagged categories the mapping keeps wire order and includes
        elements the schema does not declare.
        """
        schema = category_schema(self.policy_type, app_restrictions, restriction)
        node = self._category_node(app_restrictions, restriction) or {}
        if schema.shape is RestrictionShape.TAGGED:
            return MappingProxyType(node)
        return MappingProxyType({
            key: value for key, value in node.items()
            if key in schema.type_names and isinstance(value, RestrictionType)
        })

    def get(self, path: RestrictionPath) -> Optional[RestrictionType]:
        """
        Read one restriction leaf.

        Missing containers anywhere along the path yield ``None``; nothing
        is created.

        Raises:
            InvalidRestrictionPath: If the schema does not declare the path.
        """
        validate_path(self.policy_type, path)
        node = self._category_node(path.app_restrictions, path.restriction)
        if node is None:
            return None
        leaf = node.get(path.restriction_type)
        return leaf if isinstance(leaf, RestrictionType) else None

    def leaves(self) -> Iterator[Tuple[RestrictionPath, RestrictionType]]:
        """Present schema leaves, in schema order."""
        for path in iter_paths(self.policy_type):
            leaf = self.get(path)
            if leaf is not None:
                yield path, leaf

    # ----- structural writes -----

    def with_set(self, path: RestrictionPath, value: RestrictionType) -> "PolicyDocument":
        """
        Return a copy with one leaf replaced or inserted.

        Only the containers on the way down to ``path`` are copied; missing
        ones are created. Replacing a tagged element keeps its position and
        a new one is appended after the existing elements.

        Raises:
            InvalidRestrictionPath: If the schema does not declare the path.
        """
        validate_path(self.policy_type, path)
        schema = category_schema(self.policy_type, path.app_restrictions, path.restriction)
        if schema.shape is RestrictionShape.TAGGED and value.restriction_type != path.restriction_type:
            value = value.model_copy(update={"restriction_type": path.restriction_type})

        key = container_key(self.policy_type, path.app_restrictions)
        root = dict(self._root)
        group = dict(root[key]) if isinstance(root.get(key), dict) else {}
        node = group.get(path.restriction)
        category = dict(node) if isinstance(node, dict) else {}

        category[path.restriction_type] = value
        group[path.restriction] = category
        root[key] = group
        return PolicyDocument(self.policy_type, root)

    def without_category(self, app_restrictions: str, restriction: str) -> "PolicyDocument":
        """Return a copy with a whole category removed."""
        category_schema(self.policy_type, app_restrictions, restriction)
        key = container_key(self.policy_type, app_restrictions)
        group = self._root.get(key)
        if not isinstance(group, dict) or restriction not in group:
            return self
        root = dict(self._root)
        root[key] = {name: item for name, item in group.items() if name != restriction}
        return PolicyDocument(self.policy_type, root)

    def with_properties(self, **fields: Any) -> "PolicyDocument":
        """Return a copy with top-level scalar fields replaced."""
        for name in fields:
            if group_for_key(self.policy_type, name) is not None:
                raise ValueError(f"'{name}' holds restrictions; use with_set instead")
        root = dict(self._root)
        root.update(fields)
        return PolicyDocument(self.policy_type, root)

    # ----- value semantics -----

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PolicyDocument):
            return NotImplemented
        return self.policy_type is other.policy_type and self._root == other._root

    def __repr__(self) -> str:
        return f"PolicyDocument({self.policy_type.value}, id={self.policy_id!r})"
