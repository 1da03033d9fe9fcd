"""
Microsoft Graph directory client.

Fetches and persists application management policies, looks up principals
and manages the custom security attributes used for caller exemptions.
Every method performs exactly one logical directory operation; there is no
caching, retrying or throttling here.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import httpx

from appmgmt.config import Settings
from appmgmt.policy.models import PolicyDocument, Principal, PrincipalKind
from appmgmt.policy.schema import PolicyType


logger = logging.getLogger(__name__)

TENANT_POLICY_PATH = "/policies/defaultAppManagementPolicy"
CUSTOM_POLICIES_PATH = "/policies/appManagementPolicies"
ATTRIBUTE_SETS_PATH = "/directory/attributeSets"
ATTRIBUTE_DEFINITIONS_PATH = "/directory/customSecurityAttributeDefinitions"
CSA_VALUE_ODATA_TYPE = "#Microsoft.DirectoryServices.CustomSecurityAttributeValue"

_PRINCIPAL_PATHS = {
    PrincipalKind.USER: "/users",
    PrincipalKind.SERVICE_PRINCIPAL: "/servicePrincipals",
}


class DirectoryError(Exception):
    """Base exception for directory client errors."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.code = code


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _error_from_response(method: str, path: str, response: httpx.Response) -> DirectoryError:
    code = None
    message = response.text
    try:
        error = response.json().get("error", {})
        code = error.get("code")
        message = error.get("message") or message
    except (ValueError, AttributeError):
        pass
    return DirectoryError(
        f"{method} {path} -> {response.status_code}: {message}",
        status=response.status_code,
        code=code,
    )


class GraphDirectoryClient:
    """
    An asynchronous client for the Microsoft Graph directory.
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the client.

        Args:
            settings: Settings providing the Graph URL, API version, token
                and timeout.
            http_client: Pre-built client, mainly for tests. When omitted one
                is created from ``settings``.

        Raises:
            DirectoryError: If no access token is configured.
        """
        if http_client is None and not settings.ACCESS_TOKEN:
            raise DirectoryError("No access token configured; set APPMGMT_ACCESS_TOKEN")
        self.base_url = settings.graph_base_url
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {settings.ACCESS_TOKEN}",
                "Content-Type": "application/json",
            },
            timeout=settings.TIMEOUT_S,
        )
        logger.info("Initialized Graph client base_url=%s", self.base_url)

    async def __aenter__(self) -> "GraphDirectoryClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        accept: Sequence[int] = (),
    ) -> httpx.Response:
        """
        Send one request.

        Responses with a status listed in ``accept`` are returned even when
        they are errors; any other 4xx/5xx raises.

        Raises:
            DirectoryError: On transport failures and unexpected statuses.
        """
        start_time = time.monotonic()
        try:
            logger.debug("HTTP %s %s params=%s json=%s", method, path, params, bool(json))
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.RequestError as e:
            latency_ms = int((time.monotonic() - start_time) * 1000)
            logger.error("HTTP %s %s failed in %dms: %s", method, path, latency_ms, e)
            raise DirectoryError(f"{method} {path} failed: {e.__class__.__name__}: {e}") from e

        latency_ms = int((time.monotonic() - start_time) * 1000)
        if response.is_error and response.status_code not in accept:
            logger.warning(
                "HTTP %s %s -> %s in %dms (HTTP error)", method, path, response.status_code, latency_ms
            )
            raise _error_from_response(method, path, response)
        logger.info("HTTP %s %s -> %s in %dms", method, path, response.status_code, latency_ms)
        return response

    # ----- policies -----

    @staticmethod
    def _policy_path(policy_type: PolicyType, policy_id: Optional[str]) -> str:
        if PolicyType(policy_type) is PolicyType.TENANT:
            return TENANT_POLICY_PATH
        if not policy_id:
            raise ValueError("A custom policy id is required")
        return f"{CUSTOM_POLICIES_PATH}/{_segment(policy_id)}"

    async def fetch_policy(self, policy_type: PolicyType, policy_id: Optional[str] = None) -> PolicyDocument:
        """
        Fetch the tenant policy or one custom policy.

        Raises:
            DirectoryError: If the directory call fails.
            MalformedPolicyShape: If the policy does not match its schema.
        """
        response = await self._request("GET", self._policy_path(policy_type, policy_id))
        return PolicyDocument.from_wire(policy_type, response.json())

    async def list_custom_policies(self) -> List[Dict[str, Any]]:
        """
        Fetch every custom policy, following paging links.

        Policies are returned in wire form so that one malformed policy can
        be reported without hiding the others.
        """
        policies: List[Dict[str, Any]] = []
        url: Optional[str] = CUSTOM_POLICIES_PATH
        while url:
            body = (await self._request("GET", url)).json()
            policies.extend(body.get("value", []))
            url = body.get("@odata.nextLink")
        logger.info("Fetched %d custom policies", len(policies))
        return policies

    async def save_policy(
        self, policy_type: PolicyType, policy_id: Optional[str], payload: Dict[str, Any]
    ) -> PolicyDocument:
        """
        PATCH a policy with an already sanitized payload.

        Returns:
            The stored policy as returned by the directory, or the payload
            itself when the directory answers ``204 No Content``.
        """
        response = await self._request("PATCH", self._policy_path(policy_type, policy_id), json=payload)
        if response.status_code == 204 or not response.content:
            data = dict(payload)
            if policy_id:
                data["id"] = policy_id
            return PolicyDocument.from_wire(policy_type, data)
        return PolicyDocument.from_wire(policy_type, response.json())

    async def create_custom_policy(self, payload: Dict[str, Any]) -> PolicyDocument:
        response = await self._request("POST", CUSTOM_POLICIES_PATH, json=payload)
        return PolicyDocument.from_wire(PolicyType.CUSTOM, response.json())

    async def fetch_app_policies(self, app_id: str) -> List[PolicyDocument]:
        """Custom policies assigned to an application (by object id)."""
        response = await self._request("GET", f"/applications/{_segment(app_id)}/appManagementPolicies")
        return [PolicyDocument.from_wire(PolicyType.CUSTOM, item) for item in response.json().get("value", [])]

    async def assign_policy(self, app_id: str, policy_id: str) -> None:
        body = {"@odata.id": f"{self.base_url}{CUSTOM_POLICIES_PATH}/{_segment(policy_id)}"}
        await self._request("POST", f"/applications/{_segment(app_id)}/appManagementPolicies/$ref", json=body)

    # ----- principals -----

    async def fetch_principal(self, kind: PrincipalKind, principal_id: str) -> Optional[Principal]:
        """
        Look up a user or service principal.

        Returns:
            The principal, or ``None`` when the directory reports 404.
        """
        kind = PrincipalKind(kind)
        response = await self._request(
            "GET",
            f"{_PRINCIPAL_PATHS[kind]}/{_segment(principal_id)}",
            params={"$select": "id,displayName"},
            accept=(404,),
        )
        if response.status_code == 404:
            logger.info("%s %s not found", kind.value, principal_id)
            return None
        data = response.json()
        return Principal(kind=kind, id=data.get("id", principal_id), display_name=data.get("displayName"))

    # ----- custom security attributes -----

    async def create_attribute_set(self, name: str, description: str = "") -> bool:
        """
        Create an attribute set.

        Returns:
            True if created, False if it already existed.
        """
        response = await self._request(
            "POST",
            ATTRIBUTE_SETS_PATH,
            json={"id": name, "description": description, "maxAttributesPerSet": 25},
            accept=(409,),
        )
        if response.status_code == 409:
            logger.info("Attribute set '%s' already exists", name)
            return False
        return True

    async def create_attribute_definition(
        self, attribute_set: str, attribute_name: str, allowed_value: str, description: str = ""
    ) -> bool:
        """
        Create a single-valued string attribute restricted to predefined
        values, and make sure ``allowed_value`` is one of them.

        Returns:
            True if the definition was created, False if it already existed.
        """
        response = await self._request(
            "POST",
            ATTRIBUTE_DEFINITIONS_PATH,
            json={
                "attributeSet": attribute_set,
                "name": attribute_name,
                "description": description,
                "type": "String",
                "status": "Available",
                "isCollection": False,
                "isSearchable": True,
                "usePreDefinedValuesOnly": True,
            },
            accept=(409,),
        )
        created = response.status_code != 409
        if not created:
            logger.info("Attribute '%s.%s' already exists", attribute_set, attribute_name)

        definition_id = _segment(f"{attribute_set}_{attribute_name}")
        await self._request(
            "POST",
            f"{ATTRIBUTE_DEFINITIONS_PATH}/{definition_id}/allowedValues",
            json={"id": allowed_value, "isActive": True},
            accept=(409,),
        )
        return created

    async def assign_attribute(
        self, principal: Principal, attribute_set: str, attribute_name: str, value: Optional[str]
    ) -> None:
        """Set a principal's attribute value; ``None`` clears it."""
        body = {
            "customSecurityAttributes": {
                attribute_set: {
                    "@odata.type": CSA_VALUE_ODATA_TYPE,
                    attribute_name: value,
                }
            }
        }
        path = f"{_PRINCIPAL_PATHS[principal.kind]}/{_segment(principal.id)}"
        await self._request("PATCH", path, json=body)
