"""
Tests for the Microsoft Graph directory client.
"""

import json

import httpx
import pytest
import respx

from appmgmt.config import Settings
from appmgmt.graph.client import DirectoryError, GraphDirectoryClient
from appmgmt.policy.models import Principal, PrincipalKind, RestrictionState
from appmgmt.policy.schema import PolicyType, RestrictionPath

from tests.conftest import APP_ID, CUSTOM_ID, CUSTOM_WIRE, TENANT_WIRE, USER_ID


BASE = "https://graph.microsoft.com/beta"


@pytest.fixture
def client(settings):
    return GraphDirectoryClient(settings)


def test_requires_access_token():
    with pytest.raises(DirectoryError, match="access token"):
        GraphDirectoryClient(Settings(ACCESS_TOKEN=None))


def test_base_url_from_settings():
    settings = Settings(ACCESS_TOKEN="t", GRAPH_URL="https://graph.example.com/", API_VERSION="v1.0")
    assert GraphDirectoryClient(settings).base_url == "https://graph.example.com/v1.0"


@pytest.mark.asyncio
@respx.mock
async def test_fetch_tenant_policy(client):
    route = respx.get(f"{BASE}/policies/defaultAppManagementPolicy").mock(
        return_value=httpx.Response(200, json=TENANT_WIRE)
    )
    doc = await client.fetch_policy(PolicyType.TENANT)
    assert route.called
    assert route.calls.last.request.headers["Authorization"] == "Bearer test-token"
    assert doc.policy_type is PolicyType.TENANT
    assert doc.get(RestrictionPath.parse("identifierUris.nonDefaultUriAddition")).state is RestrictionState.ENABLED


@pytest.mark.asyncio
@respx.mock
async def test_fetch_custom_policy(client):
    respx.get(f"{BASE}/policies/appManagementPolicies/{CUSTOM_ID}").mock(
        return_value=httpx.Response(200, json=CUSTOM_WIRE)
    )
    doc = await client.fetch_policy(PolicyType.CUSTOM, CUSTOM_ID)
    assert doc.policy_id == CUSTOM_ID


@pytest.mark.asyncio
async def test_fetch_custom_policy_requires_id(client):
    with pytest.raises(ValueError):
        await client.fetch_policy(PolicyType.CUSTOM)


@pytest.mark.asyncio
@respx.mock
async def test_error_response_raises_directory_error(client):
    respx.get(f"{BASE}/policies/defaultAppManagementPolicy").mock(
        return_value=httpx.Response(403, json={
            "error": {"code": "Authorization_RequestDenied", "message": "Insufficient privileges"},
        })
    )
    with pytest.raises(DirectoryError, match="Insufficient privileges") as exc_info:
        await client.fetch_policy(PolicyType.TENANT)
    assert exc_info.value.status == 403
    assert exc_info.value.code == "Authorization_RequestDenied"


@pytest.mark.asyncio
@respx.mock
async def test_transport_error_raises_directory_error(client):
    respx.get(f"{BASE}/policies/defaultAppManagementPolicy").mock(
        side_effect=httpx.ConnectError("connection refused")
    )
    with pytest.raises(DirectoryError, match="ConnectError"):
        await client.fetch_policy(PolicyType.TENANT)


@pytest.mark.asyncio
@respx.mock
async def test_list_custom_policies_follows_next_link(client):
    next_link = f"{BASE}/policies/appManagementPolicies?$skiptoken=abc"
    respx.get(f"{BASE}/policies/appManagementPolicies", params={"$skiptoken": "abc"}).mock(
        return_value=httpx.Response(200, json={"value": [{"id": "second"}]})
    )
    respx.get(f"{BASE}/policies/appManagementPolicies").mock(
        return_value=httpx.Response(200, json={"value": [CUSTOM_WIRE], "@odata.nextLink": next_link})
    )
    policies = await client.list_custom_policies()
    assert [p["id"] for p in policies] == [CUSTOM_ID, "second"]


@pytest.mark.asyncio
@respx.mock
async def test_save_policy_no_content_returns_payload(client):
    route = respx.patch(f"{BASE}/policies/appManagementPolicies/{CUSTOM_ID}").mock(
        return_value=httpx.Response(204)
    )
    payload = {"displayName": "Renamed", "restrictions": {"identifierUris": {}}}
    doc = await client.save_policy(PolicyType.CUSTOM, CUSTOM_ID, payload)
    assert json.loads(route.calls.last.request.content) == payload
    assert doc.policy_id == CUSTOM_ID
    assert doc.get_property("displayName") == "Renamed"


@pytest.mark.asyncio
@respx.mock
async def test_create_custom_policy(client):
    route = respx.post(f"{BASE}/policies/appManagementPolicies").mock(
        return_value=httpx.Response(201, json={**CUSTOM_WIRE, "id": "created"})
    )
    doc = await client.create_custom_policy({"displayName": "New"})
    assert route.called
    assert doc.policy_id == "created"


@pytest.mark.asyncio
@respx.mock
async def test_fetch_app_policies(client):
    respx.get(f"{BASE}/applications/{APP_ID}/appManagementPolicies").mock(
        return_value=httpx.Response(200, json={"value": [CUSTOM_WIRE]})
    )
    policies = await client.fetch_app_policies(APP_ID)
    assert [p.policy_id for p in policies] == [CUSTOM_ID]


@pytest.mark.asyncio
@respx.mock
async def test_assign_policy_posts_reference(client):
    route = respx.post(f"{BASE}/applications/{APP_ID}/appManagementPolicies/$ref").mock(
        return_value=httpx.Response(204)
    )
    await client.assign_policy(APP_ID, CUSTOM_ID)
    assert json.loads(route.calls.last.request.content) == {
        "@odata.id": f"{BASE}/policies/appManagementPolicies/{CUSTOM_ID}",
    }


@pytest.mark.asyncio
@respx.mock
async def test_fetch_principal(client):
    respx.get(f"{BASE}/users/{USER_ID}").mock(
        return_value=httpx.Response(200, json={"id": USER_ID, "displayName": "Adele Vance"})
    )
    principal = await client.fetch_principal(PrincipalKind.USER, USER_ID)
    assert principal == Principal(kind=PrincipalKind.USER, id=USER_ID, display_name="Adele Vance")


@pytest.mark.asyncio
@respx.mock
async def test_fetch_missing_principal_returns_none(client):
    respx.get(f"{BASE}/servicePrincipals/missing").mock(
        return_value=httpx.Response(404, json={"error": {"code": "Request_ResourceNotFound"}})
    )
    assert await client.fetch_principal(PrincipalKind.SERVICE_PRINCIPAL, "missing") is None


@pytest.mark.asyncio
@respx.mock
async def test_create_attribute_set_conflict_means_existing(client):
    respx.post(f"{BASE}/directory/attributeSets").mock(
        return_value=httpx.Response(409, json={"error": {"code": "Conflict"}})
    )
    assert await client.create_attribute_set("AppManagementExemptions") is False


@pytest.mark.asyncio
@respx.mock
async def test_create_attribute_definition_adds_allowed_value(client):
    definition = respx.post(f"{BASE}/directory/customSecurityAttributeDefinitions").mock(
        return_value=httpx.Response(201, json={"id": "Set_Name"})
    )
    allowed = respx.post(f"{BASE}/directory/customSecurityAttributeDefinitions/Set_Name/allowedValues").mock(
        return_value=httpx.Response(409)
    )
    assert await client.create_attribute_definition("Set", "Name", "Exempt") is True
    body = json.loads(definition.calls.last.request.content)
    assert body["usePreDefinedValuesOnly"] is True
    assert body["type"] == "String"
    assert json.loads(allowed.calls.last.request.content) == {"id": "Exempt", "isActive": True}


@pytest.mark.asyncio
@respx.mock
async def test_assign_attribute(client):
    route = respx.patch(f"{BASE}/users/{USER_ID}").mock(return_value=httpx.Response(204))
    principal = Principal(kind=PrincipalKind.USER, id=USER_ID)
    await client.assign_attribute(principal, "Set", "Name", None)
    assert json.loads(route.calls.last.request.content) == {
        "customSecurityAttributes": {
            "Set": {"@odata.type": "#Microsoft.DirectoryServices.CustomSecurityAttributeValue", "Name": None},
        },
    }
