import copy

import pytest
from click.testing import CliRunner
from unittest.mock import AsyncMock

from appmgmt.config import Settings
from appmgmt.graph.client import GraphDirectoryClient
from appmgmt.policy.models import PolicyDocument, Principal, PrincipalKind
from appmgmt.policy.schema import PolicyType


TENANT_ID = "00000000-0000-0000-0000-000000000000"
CUSTOM_ID = "db9d4b58-3488-4da4-9994-49773c454e33"
APP_ID = "a1b2c3d4-0000-4000-8000-000000000001"
USER_ID = "f0e1d2c3-0000-4000-8000-000000000002"
CSA_ID = "AppManagementExemptions_ExemptFromRestriction"

TENANT_WIRE = {
    "@odata.context": "https://graph.microsoft.com/beta/$metadata#policies/defaultAppManagementPolicy/$entity",
    "id": TENANT_ID,
    "displayName": "Default app management tenant policy",
    "description": "Default tenant policy that enforces app management restrictions.",
    "isEnabled": True,
    "applicationRestrictions": {
        "passwordCredentials@odata.context": "https://graph.microsoft.com/beta/$metadata#passwordCredentials",
        "passwordCredentials": [
            {
                "restrictionType": "passwordAddition",
                "state": "enabled",
                "maxLifetime": None,
                "restrictForAppsCreatedAfterDateTime": "2021-01-01T10:37:00Z",
            },
            {
                "restrictionType": "passwordLifetime",
                "state": "enabled",
                "maxLifetime": "P90D",
                "restrictForAppsCreatedAfterDateTime": "2017-01-01T10:37:00Z",
            },
            {
                "restrictionType": "symmetricKeyAddition",
                "maxLifetime": None,
                "restrictForAppsCreatedAfterDateTime": "2021-01-01T10:37:00Z",
            },
        ],
        "keyCredentials": [
            {
                "restrictionType": "asymmetricKeyLifetime",
                "state": "enabled",
                "maxLifetime": "P90D",
                "restrictForAppsCreatedAfterDateTime": "2015-01-01T10:37:00Z",
            },
        ],
        "identifierUris": {
            "nonDefaultUriAddition": {
                "state": "enabled",
                "restrictForAppsCreatedAfterDateTime": "2024-01-01T00:00:00Z",
                "excludeAppsReceivingV2Tokens": True,
                "excludeSaml": True,
                "excludeActors": {
                    "customSecurityAttributes@odata.context": "https://graph.microsoft.com/beta/$metadata#customSecurityAttributes",
                    "customSecurityAttributes": [
                        {
                            "@odata.type": "#microsoft.graph.customSecurityAttributeStringValueExemption",
                            "id": CSA_ID,
                            "operator": "equals",
                            "value": "Exempt",
                        }
                    ],
                },
            },
        },
        "audiences": {
            "azureAdMultipleOrgs": None,
            "personalMicrosoftAccount": None,
        },
    },
    "servicePrincipalRestrictions": {
        "passwordCredentials": [],
        "keyCredentials": [],
    },
}

CUSTOM_WIRE = {
    "id": CUSTOM_ID,
    "displayName": "Custom app policy",
    "description": "Custom policy for legacy applications.",
    "isEnabled": True,
    "restrictions": {
        "passwordCredentials": [
            {
                "restrictionType": "passwordAddition",
                "state": "disabled",
                "maxLifetime": None,
                "restrictForAppsCreatedAfterDateTime": "2019-01-01T10:37:00Z",
            },
        ],
        "keyCredentials": [],
        "identifierUris": {
            "uriAdditionWithoutUniqueTenantIdentifier": {"state": "enabled"},
        },
    },
}


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer environment variables out of the tests."""
    for name in (
        "APPMGMT_DRY_RUN", "APPMGMT_GRAPH_URL", "APPMGMT_API_VERSION",
        "APPMGMT_LOG_LEVEL", "APPMGMT_LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("APPMGMT_ACCESS_TOKEN", "test-token")


@pytest.fixture
def settings():
    return Settings(ACCESS_TOKEN="test-token")


@pytest.fixture
def tenant_wire():
    return copy.deepcopy(TENANT_WIRE)


@pytest.fixture
def custom_wire():
    return copy.deepcopy(CUSTOM_WIRE)


@pytest.fixture
def tenant_doc(tenant_wire):
    return PolicyDocument.from_wire(PolicyType.TENANT, tenant_wire)


@pytest.fixture
def custom_doc(custom_wire):
    return PolicyDocument.from_wire(PolicyType.CUSTOM, custom_wire)


@pytest.fixture
def principal():
    return Principal(kind=PrincipalKind.USER, id=USER_ID, display_name="Adele Vance")


@pytest.fixture
def mock_client(tenant_doc, custom_doc, principal):
    """Directory client double serving the tenant and custom fixtures."""
    client = AsyncMock(spec=GraphDirectoryClient)

    def fetch_policy(policy_type, policy_id=None):
        if PolicyType(policy_type) is PolicyType.TENANT:
            return tenant_doc
        return custom_doc

    client.fetch_policy.side_effect = fetch_policy
    client.fetch_app_policies.return_value = [custom_doc]
    client.fetch_principal.return_value = principal
    client.list_custom_policies.return_value = [copy.deepcopy(CUSTOM_WIRE)]
    client.save_policy.side_effect = lambda policy_type, policy_id, payload: PolicyDocument.from_wire(
        policy_type, {**payload, "id": policy_id} if policy_id else payload
    )
    client.create_custom_policy.side_effect = lambda payload: PolicyDocument.from_wire(
        PolicyType.CUSTOM, {**payload, "id": "new-policy-id"}
    )
    client.create_attribute_set.return_value = True
    client.create_attribute_definition.return_value = True
    return client
