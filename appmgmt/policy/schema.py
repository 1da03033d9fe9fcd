"""
Restriction schema for application management policies.

Declares, per policy type and restriction group, which restriction
categories exist, how each one is represented on the wire (keyed object or
tagged list) and which restriction types it accepts. Every access path into
a policy document is validated against this module.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, NamedTuple, Optional, Tuple, Union

from appmgmt.policy.errors import InvalidRestrictionPath


class PolicyType(str, Enum):
    """Kind of application management policy."""
    TENANT = "tenant"
    CUSTOM = "custom"


class RestrictionShape(str, Enum):
    """Wire representation of a restriction category."""
    KEYED = "keyed"
    TAGGED = "tagged"


APPLICATION_RESTRICTIONS = "applicationRestrictions"
SERVICE_PRINCIPAL_RESTRICTIONS = "servicePrincipalRestrictions"

# Wire key holding the application restrictions of a custom policy.
CUSTOM_RESTRICTIONS_KEY = "restrictions"

TAG_FIELD = "restrictionType"


class RestrictionPath(NamedTuple):
    """Address of one restriction leaf: group, category and type name."""
    app_restrictions: str
    restriction: str
    restriction_type: str

    def __str__(self) -> str:
        return ".".join(self)

    @classmethod
    def parse(cls, value: str) -> "RestrictionPath":
        """
        Parse ``group.category.type`` or ``category.type``.

        The two-part form addresses ``applicationRestrictions``.
        """
        parts = [p for p in value.strip().split(".") if p]
        if len(parts) == 2:
            return cls(APPLICATION_RESTRICTIONS, parts[0], parts[1])
        if len(parts) == 3:
            return cls(parts[0], parts[1], parts[2])
        raise InvalidRestrictionPath(
            "Expected 'category.type' or 'group.category.type'", path=value
        )


@dataclass(frozen=True)
class CategorySchema:
    """Schema facts for one restriction category."""
    name: str
    shape: RestrictionShape
    type_names: Tuple[str, ...]


_PASSWORD_CREDENTIALS = CategorySchema(
    name="passwordCredentials",
    shape=RestrictionShape.TAGGED,
    type_names=(
        "passwordAddition",
        "passwordLifetime",
        "symmetricKeyAddition",
        "symmetricKeyLifetime",
        "customPasswordAddition",
    ),
)

_KEY_CREDENTIALS = CategorySchema(
    name="keyCredentials",
    shape=RestrictionShape.TAGGED,
    type_names=("asymmetricKeyLifetime", "trustedCertificateAuthority"),
)

_IDENTIFIER_URIS = CategorySchema(
    name="identifierUris",
    shape=RestrictionShape.KEYED,
    type_names=("nonDefaultUriAddition", "uriAdditionWithoutUniqueTenantIdentifier"),
)

_AUDIENCES = CategorySchema(
    name="audiences",
    shape=RestrictionShape.KEYED,
    type_names=("azureAdMultipleOrgs", "personalMicrosoftAccount"),
)


def _group(*categories: CategorySchema) -> Mapping[str, CategorySchema]:
    return MappingProxyType({c.name: c for c in categories})


_SCHEMAS: Mapping[PolicyType, Mapping[str, Mapping[str, CategorySchema]]] = MappingProxyType({
    PolicyType.TENANT: MappingProxyType({
        APPLICATION_RESTRICTIONS: _group(
            _PASSWORD_CREDENTIALS, _KEY_CREDENTIALS, _IDENTIFIER_URIS, _AUDIENCES
        ),
        SERVICE_PRINCIPAL_RESTRICTIONS: _group(_PASSWORD_CREDENTIALS, _KEY_CREDENTIALS),
    }),
    # Custom policies only restrict applications.
    PolicyType.CUSTOM: MappingProxyType({
        APPLICATION_RESTRICTIONS: _group(
            _PASSWORD_CREDENTIALS, _KEY_CREDENTIALS, _IDENTIFIER_URIS, _AUDIENCES
        ),
    }),
})


def _policy_type(policy_type: Union[PolicyType, str]) -> PolicyType:
    try:
        return PolicyType(policy_type)
    except ValueError:
        raise InvalidRestrictionPath(f"Unknown policy type '{policy_type}'") from None


def group_names(policy_type: Union[PolicyType, str]) -> Tuple[str, ...]:
    """Restriction groups declared for a policy type, in schema order."""
    return tuple(_SCHEMAS[_policy_type(policy_type)])


def category_schema(
    policy_type: Union[PolicyType, str], app_restrictions: str, restriction: str
) -> CategorySchema:
    """
    Look up the schema of one restriction category.

    Raises:
        InvalidRestrictionPath: If the group or category is not declared
            for the policy type.
    """
    ptype = _policy_type(policy_type)
    groups = _SCHEMAS[ptype]
    if app_restrictions not in groups:
        raise InvalidRestrictionPath(
            f"'{app_restrictions}' is not a restriction group of {ptype.value} policies",
            path=app_restrictions,
        )
    categories = groups[app_restrictions]
    if restriction not in categories:
        raise InvalidRestrictionPath(
            f"'{restriction}' is not a restriction of {ptype.value} {app_restrictions}",
            path=f"{app_restrictions}.{restriction}",
        )
    return categories[restriction]


def category_names(policy_type: Union[PolicyType, str], app_restrictions: str) -> Tuple[str, ...]:
    """Categories declared under a restriction group, in schema order."""
    ptype = _policy_type(policy_type)
    groups = _SCHEMAS[ptype]
    if app_restrictions not in groups:
        raise InvalidRestrictionPath(
            f"'{app_restrictions}' is not a restriction group of {ptype.value} policies",
            path=app_restrictions,
        )
    return tuple(groups[app_restrictions])


def shape_of(
    policy_type: Union[PolicyType, str], app_restrictions: str, restriction: str
) -> RestrictionShape:
    """Wire shape of a restriction category."""
    return category_schema(policy_type, app_restrictions, restriction).shape


def valid_type_names(
    policy_type: Union[PolicyType, str], app_restrictions: str, restriction: str
) -> Tuple[str, ...]:
    """Restriction type names accepted by a category, in schema order."""
    return category_schema(policy_type, app_restrictions, restriction).type_names


def is_valid_path(
    policy_type: Union[PolicyType, str],
    app_restrictions: str,
    restriction: str,
    type_name: str,
) -> bool:
    """Whether the schema declares this restriction leaf."""
    try:
        return type_name in valid_type_names(policy_type, app_restrictions, restriction)
    except InvalidRestrictionPath:
        return False


def validate_path(policy_type: Union[PolicyType, str], path: RestrictionPath) -> RestrictionPath:
    """
    Ensure a restriction path is declared for the policy type.

    Returns:
        The path itself, for chaining.

    Raises:
        InvalidRestrictionPath: If any part of the path is unknown.
    """
    names = valid_type_names(policy_type, path.app_restrictions, path.restriction)
    if path.restriction_type not in names:
        raise InvalidRestrictionPath(
            f"'{path.restriction_type}' is not a valid {path.restriction} restriction type",
            path=str(path),
        )
    return path


def iter_paths(policy_type: Union[PolicyType, str]) -> Iterator[RestrictionPath]:
    """Every restriction leaf of a policy type, in schema order."""
    for group, categories in _SCHEMAS[_policy_type(policy_type)].items():
        for category in categories.values():
            for type_name in category.type_names:
                yield RestrictionPath(group, category.name, type_name)


def container_key(policy_type: Union[PolicyType, str], app_restrictions: str) -> str:
    """Wire key under which a restriction group is stored in a document."""
    ptype = _policy_type(policy_type)
    category_names(ptype, app_restrictions)
    if ptype is PolicyType.CUSTOM:
        return CUSTOM_RESTRICTIONS_KEY
    return app_restrictions


def group_for_key(policy_type: Union[PolicyType, str], key: str) -> Optional[str]:
    """Inverse of :func:`container_key`; ``None`` for keys holding no restrictions."""
    for group in group_names(policy_type):
        if container_key(policy_type, group) == key:
            return group
    return None
