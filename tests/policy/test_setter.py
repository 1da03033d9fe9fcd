import pytest

from appmgmt.policy.errors import InvalidRestrictionPath, MalformedPolicyShape
from appmgmt.policy.models import PolicyDocument, RestrictionState, RestrictionType
from appmgmt.policy.schema import PolicyType, RestrictionPath, iter_paths
from appmgmt.policy.setter import set_restriction, update_restriction

from tests.conftest import CSA_ID


DISABLED = RestrictionType(state=RestrictionState.DISABLED)
NON_DEFAULT_URI = RestrictionPath.parse("identifierUris.nonDefaultUriAddition")


def test_set_preserves_every_other_leaf(tenant_doc):
    path = RestrictionPath.parse("keyCredentials.asymmetricKeyLifetime")
    updated = set_restriction(PolicyType.TENANT, tenant_doc, *path, DISABLED)

    assert updated.get(path).state is RestrictionState.DISABLED
    for other in iter_paths(PolicyType.TENANT):
        if other != path:
            assert updated.get(other) == tenant_doc.get(other)
    assert updated.properties == tenant_doc.properties


def test_set_preserves_sibling_groups(tenant_doc):
    updated = set_restriction(PolicyType.TENANT, tenant_doc, *NON_DEFAULT_URI, DISABLED)
    before, after = tenant_doc.to_wire(), updated.to_wire()
    assert after["servicePrincipalRestrictions"] == before["servicePrincipalRestrictions"]
    for name in ("passwordCredentials", "keyCredentials", "audiences"):
        assert after["applicationRestrictions"][name] == before["applicationRestrictions"][name]


def test_set_is_idempotent(tenant_doc):
    once = set_restriction(PolicyType.TENANT, tenant_doc, *NON_DEFAULT_URI, DISABLED)
    twice = set_restriction(PolicyType.TENANT, once, *NON_DEFAULT_URI, DISABLED)
    assert twice == once
    assert twice is once


def test_set_is_idempotent_for_tagged_leaves(tenant_doc):
    path = RestrictionPath.parse("passwordCredentials.passwordLifetime")
    once = set_restriction(PolicyType.TENANT, tenant_doc, *path, DISABLED)
    assert set_restriction(PolicyType.TENANT, once, *path, DISABLED) is once


def test_set_same_value_returns_input(tenant_doc):
    leaf = tenant_doc.get(NON_DEFAULT_URI)
    assert set_restriction(PolicyType.TENANT, tenant_doc, *NON_DEFAULT_URI, leaf) is tenant_doc


def test_set_rejects_undeclared_path_without_touching_doc(custom_doc, custom_wire):
    with pytest.raises(InvalidRestrictionPath):
        set_restriction(
            PolicyType.CUSTOM, custom_doc,
            "servicePrincipalRestrictions", "passwordCredentials", "passwordAddition", DISABLED,
        )
    with pytest.raises(InvalidRestrictionPath):
        set_restriction(PolicyType.CUSTOM, custom_doc, "applicationRestrictions", "audiences", "everyone", DISABLED)
    assert custom_doc == PolicyDocument.from_wire(PolicyType.CUSTOM, custom_wire)


def test_set_rejects_mismatched_policy_type(custom_doc):
    with pytest.raises(MalformedPolicyShape):
        set_restriction(PolicyType.TENANT, custom_doc, *NON_DEFAULT_URI, DISABLED)


def test_tagged_insert_keeps_existing_order():
    doc = PolicyDocument.from_wire(PolicyType.CUSTOM, {
        "restrictions": {
            "passwordCredentials": [
                {"restrictionType": "passwordAddition", "state": "enabled"},
                {"restrictionType": "passwordLifetime", "state": "enabled"},
                {"restrictionType": "symmetricKeyAddition", "state": "enabled"},
            ],
        },
    })
    replaced = set_restriction(
        PolicyType.CUSTOM, doc, "applicationRestrictions", "passwordCredentials", "passwordLifetime", DISABLED,
    )
    inserted = set_restriction(
        PolicyType.CUSTOM, replaced, "applicationRestrictions", "passwordCredentials",
        "customPasswordAddition", DISABLED,
    )
    elements = inserted.to_wire()["restrictions"]["passwordCredentials"]
    assert [(e["restrictionType"], e["state"]) for e in elements] == [
        ("passwordAddition", "enabled"),
        ("passwordLifetime", "disabled"),
        ("symmetricKeyAddition", "enabled"),
        ("customPasswordAddition", "disabled"),
    ]


def test_set_creates_missing_containers():
    doc = PolicyDocument.empty(PolicyType.CUSTOM, displayName="New")
    updated = set_restriction(PolicyType.CUSTOM, doc, *NON_DEFAULT_URI, DISABLED)
    assert updated.to_wire() == {
        "displayName": "New",
        "restrictions": {"identifierUris": {"nonDefaultUriAddition": {"state": "disabled"}}},
    }


def test_update_keeps_exemptions_and_modifiers(tenant_doc):
    updated = update_restriction(PolicyType.TENANT, tenant_doc, NON_DEFAULT_URI, state=RestrictionState.DISABLED)
    leaf = updated.get(NON_DEFAULT_URI)
    assert leaf.state is RestrictionState.DISABLED
    assert leaf.exclude_saml is True
    assert leaf.exclude_apps_receiving_v2_tokens is True
    assert [r.id for r in leaf.exemptions] == [CSA_ID]
    assert leaf.restrict_for_apps_created_after_date_time == tenant_doc.get(NON_DEFAULT_URI).restrict_for_apps_created_after_date_time


def test_update_none_removes_field(tenant_doc):
    updated = update_restriction(PolicyType.TENANT, tenant_doc, NON_DEFAULT_URI, exclude_saml=None)
    assert updated.get(NON_DEFAULT_URI).exclude_saml is None
    assert "excludeSaml" not in updated.to_wire()["applicationRestrictions"]["identifierUris"]["nonDefaultUriAddition"]


def test_update_creates_absent_leaf(custom_doc):
    updated = update_restriction(
        PolicyType.CUSTOM, custom_doc, NON_DEFAULT_URI, state=RestrictionState.ENABLED, exclude_saml=False,
    )
    assert updated.get(NON_DEFAULT_URI) == RestrictionType(state=RestrictionState.ENABLED, exclude_saml=False)


def test_update_without_change_returns_input(tenant_doc):
    assert update_restriction(
        PolicyType.TENANT, tenant_doc, NON_DEFAULT_URI, state=RestrictionState.ENABLED,
    ) is tenant_doc
