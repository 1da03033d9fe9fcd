"""
Tests for the effective restriction audit.
"""

import pytest

from appmgmt.graph.client import DirectoryError
from appmgmt.operations.audit import audit, audit_custom, audit_tenant
from appmgmt.policy.schema import PolicyType

from tests.conftest import CSA_ID, CUSTOM_ID, CUSTOM_WIRE, TENANT_ID


def test_audit_tenant_rows(tenant_doc):
    rows = {row.path: row for row in audit_tenant(tenant_doc)}
    assert set(rows) == {str(path) for path, _ in tenant_doc.leaves()}

    row = rows["applicationRestrictions.identifierUris.nonDefaultUriAddition"]
    assert row.policy_id == TENANT_ID
    assert row.state == "enabled"
    assert row.exemptions == [CSA_ID]
    assert rows["applicationRestrictions.passwordCredentials.symmetricKeyAddition"].state == "enabled"


def test_audit_custom_marks_inherited_rows(tenant_doc, custom_doc):
    rows = {row.path: row for row in audit_custom(tenant_doc, custom_doc)}

    own = rows["applicationRestrictions.passwordCredentials.passwordAddition"]
    assert own.state == "disabled"
    assert not own.inherited

    inherited = rows["applicationRestrictions.identifierUris.nonDefaultUriAddition"]
    assert inherited.state == "disabled"
    assert inherited.inherited
    assert inherited.display_name == "Custom app policy"


@pytest.mark.asyncio
async def test_audit_selected_policies(mock_client):
    rows = await audit(mock_client, policy_ids=[CUSTOM_ID])
    assert {row.policy_type for row in rows} == {PolicyType.TENANT, PolicyType.CUSTOM}
    assert not any(row.error for row in rows)
    mock_client.list_custom_policies.assert_not_awaited()


@pytest.mark.asyncio
async def test_audit_all_reports_malformed_policy_and_continues(mock_client):
    broken = {"id": "broken", "displayName": "Broken", "restrictions": {"passwordCredentials": {"oops": 1}}}
    mock_client.list_custom_policies.return_value = [broken, CUSTOM_WIRE]

    rows = await audit(mock_client, include_all=True)

    errors = [row for row in rows if row.error]
    assert len(errors) == 1
    assert errors[0].policy_id == "broken"
    assert errors[0].display_name == "Broken"
    assert errors[0].path == "applicationRestrictions.passwordCredentials"
    assert "MalformedPolicyShape" in errors[0].error
    assert any(row.policy_id == CUSTOM_ID for row in rows if not row.error)


@pytest.mark.asyncio
async def test_audit_selected_policy_fetch_failure_becomes_error_row(mock_client, tenant_doc, custom_doc):
    def fetch_policy(policy_type, policy_id=None):
        if PolicyType(policy_type) is PolicyType.TENANT:
            return tenant_doc
        if policy_id == "gone":
            raise DirectoryError("GET /policies/appManagementPolicies/gone -> 404: gone", status=404)
        return custom_doc

    mock_client.fetch_policy.side_effect = fetch_policy

    rows = await audit(mock_client, policy_ids=["gone", CUSTOM_ID])

    errors = [row for row in rows if row.error]
    assert len(errors) == 1
    assert errors[0].policy_id == "gone"
    assert errors[0].path is None
    assert "404" in errors[0].error
    assert any(row.policy_type is PolicyType.TENANT for row in rows)
    assert any(row.policy_id == CUSTOM_ID for row in rows if not row.error)
