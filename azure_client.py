"""
Azure Client - Thin wrapper over the Azure SDK for authentication, subscriptions,
resource providers and resource queries.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from azure.core.exceptions import AzureError, ClientAuthenticationError, ResourceNotFoundError
from azure.identity import AzureCliCredential, ClientSecretCredential, InteractiveBrowserCredential
from azure.mgmt.resource.resources import ResourceManagementClient
from azure.mgmt.subscription import SubscriptionClient

logger = logging.getLogger(__name__)

MANAGEMENT_SCOPE = "https://management.azure.com/.default"
REGISTERED_STATE = "Registered"


class AzureClientError(Exception):
    """Base exception for Azure client errors"""
    pass


class AuthenticationError(AzureClientError):
    """Raised when no usable Azure credential could be obtained"""
    pass


class ResourceNotFound(AzureClientError):
    """Raised when a query has nothing to return"""
    pass


@dataclass
class AzureSession:
    """An authenticated credential plus how it was obtained."""
    credential: object
    method: str
    tenant_id: Optional[str] = None


@dataclass
class SubscriptionInfo:
    subscription_id: str
    display_name: str = ''
    state: str = ''


@dataclass
class ResourceInfo:
    name: str
    resource_type: str
    resource_group: str = ''
    subscription_id: str = ''
    tags: Dict[str, str] = field(default_factory=dict)


def _probe(credential) -> None:
    """Request a management token so bad credentials fail here, not mid-export."""
    credential.get_token(MANAGEMENT_SCOPE)


def authenticate(tenant_id: Optional[str] = None, client_id: Optional[str] = None,
                 client_secret: Optional[str] = None) -> AzureSession:
    """
    Obtain an Azure session.

    An existing Azure CLI sign-in is reused when there is one. Otherwise a
    service principal is used when both client id and secret are given, and an
    interactive browser sign-in is the last resort.
    """
    try:
        cli_credential = AzureCliCredential(tenant_id=tenant_id) if tenant_id else AzureCliCredential()
        _probe(cli_credential)
        logger.info("Reusing existing Azure CLI session")
        return AzureSession(cli_credential, 'cli', tenant_id)
    except ClientAuthenticationError as e:
        logger.debug(f"No existing Azure CLI session: {e}")

    if client_id and client_secret:
        if not tenant_id:
            raise AuthenticationError("Tenant ID is required for service principal sign-in")
        logger.info(f"Signing in as service principal {client_id}")
        try:
            credential = ClientSecretCredential(
                tenant_id=tenant_id,
                client_id=client_id,
                client_secret=client_secret
            )
            _probe(credential)
        except (AzureError, ValueError) as e:
            raise AuthenticationError(f"Service principal sign-in failed: {e}") from e
        return AzureSession(credential, 'service_principal', tenant_id)

    logger.info("Starting interactive sign-in")
    try:
        credential = InteractiveBrowserCredential(tenant_id=tenant_id) if tenant_id else InteractiveBrowserCredential()
        _probe(credential)
    except (AzureError, ValueError) as e:
        raise AuthenticationError(f"Interactive sign-in failed: {e}") from e
    return AzureSession(credential, 'interactive', tenant_id)


def parse_resource_group(resource_id: Optional[str]) -> str:
    """Extract the resource group name from an ARM resource ID."""
    if not resource_id:
        return ''
    parts = resource_id.split('/')
    lowered = [p.lower() for p in parts]
    try:
        return parts[lowered.index('resourcegroups') + 1]
    except (ValueError, IndexError):
        return ''


class AzureClient:
    """
    Azure Resource Manager client bound to an explicit session.
    """

    def __init__(self, session: AzureSession):
        self.session = session
        self._subscription_client = None
        self._resource_clients: Dict[str, ResourceManagementClient] = {}

    @property
    def subscription_client(self) -> SubscriptionClient:
        if self._subscription_client is None:
            self._subscription_client = SubscriptionClient(self.session.credential)
        return self._subscription_client

    def resource_client(self, subscription_id: str) -> ResourceManagementClient:
        """Return the resource client for a subscription, creating it on first use."""
        client = self._resource_clients.get(subscription_id)
        if client is None:
            logger.debug(f"Creating resource client for subscription {subscription_id}")
            client = ResourceManagementClient(self.session.credential, subscription_id)
            self._resource_clients[subscription_id] = client
        return client

    def resolve_subscriptions(self, subscription_id: Optional[str] = None) -> List[SubscriptionInfo]:
        """
        Resolve one subscription by ID, or every subscription visible to the identity.
        """
        try:
            if subscription_id:
                subs = [self.subscription_client.subscriptions.get(subscription_id)]
            else:
                subs = list(self.subscription_client.subscriptions.list())
        except AzureError as e:
            raise AzureClientError(f"Failed to resolve subscriptions: {e}") from e

        resolved = [
            SubscriptionInfo(
                subscription_id=sub.subscription_id,
                display_name=sub.display_name or '',
                state=str(sub.state or '')
            )
            for sub in subs
        ]
        if not resolved:
            raise AzureClientError("No subscriptions visible to the authenticated identity")

        logger.info(f"Resolved {len(resolved)} subscription(s)")
        return resolved

    def iter_resource_types(self, subscription_id: str) -> Iterator[str]:
        """
        Yield '<namespace>/<type>' for every resource type of every registered provider.

        Providers are visited in namespace order. Listing failures raise AzureClientError.
        """
        try:
            providers = list(self.resource_client(subscription_id).providers.list())
        except AzureError as e:
            raise AzureClientError(f"Failed to list resource providers: {e}") from e

        registered = [p for p in providers if p.registration_state == REGISTERED_STATE]
        logger.info(f"{len(registered)} of {len(providers)} resource providers are registered")

        for provider in sorted(registered, key=lambda p: p.namespace.lower()):
            for resource_type in provider.resource_types or []:
                yield f"{provider.namespace}/{resource_type.resource_type}"

    def list_resources(self, subscription_id: str, resource_type: str) -> List[ResourceInfo]:
        """List every resource of a type in a subscription."""
        client = self.resource_client(subscription_id)
        query = f"resourceType eq '{resource_type}'"
        logger.debug(f"Listing resources in {subscription_id} with filter: {query}")
        resources = [self._to_info(r, subscription_id) for r in client.resources.list(filter=query)]
        if not resources:
            raise ResourceNotFound(f"No resources of type {resource_type} in subscription {subscription_id}")
        return resources

    def get_resource(self, subscription_id: str, resource_type: str,
                     resource_group: str, resource_name: str) -> ResourceInfo:
        """
        Fetch exactly one named resource of a type in a resource group.
        Raises ResourceNotFound when the resource or the resource group does not exist.
        """
        client = self.resource_client(subscription_id)
        query = f"resourceType eq '{resource_type}'"
        try:
            for resource in client.resources.list_by_resource_group(resource_group, filter=query):
                if resource.name and resource.name.lower() == resource_name.lower():
                    return self._to_info(resource, subscription_id)
        except ResourceNotFoundError as e:
            raise ResourceNotFound(f"Resource group {resource_group} not found: {e.message}") from e

        raise ResourceNotFound(
            f"Resource {resource_name} of type {resource_type} not found in {resource_group}"
        )

    @staticmethod
    def _to_info(resource, subscription_id: str) -> ResourceInfo:
        return ResourceInfo(
            name=resource.name,
            resource_type=resource.type,
            resource_group=parse_resource_group(resource.id),
            subscription_id=subscription_id,
            tags=dict(resource.tags or {})
        )
