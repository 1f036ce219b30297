"""
Tag Collector - Runs the resource query for one resource type across subscriptions.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from azure.core.exceptions import ResourceNotFoundError

from azure_client import AzureClient, ResourceNotFound, SubscriptionInfo
from normalize import TagFlattener

logger = logging.getLogger(__name__)


@dataclass
class CollectionResult:
    """Outcome of one resource-type pass."""
    resource_type: str
    records: list = field(default_factory=list)
    tag_keys: List[str] = field(default_factory=list)
    not_found: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class TagCollector:
    """
    Collects and flattens tags for a resource type over a list of subscriptions.
    """

    def __init__(self, client: AzureClient, subscriptions: List[SubscriptionInfo]):
        self.client = client
        self.subscriptions = subscriptions

    def query_subscription(self, subscription: SubscriptionInfo, resource_type: str,
                           resource_name: Optional[str] = None,
                           resource_group: Optional[str] = None) -> list:
        """Query one subscription; a single named resource when resource_name is given."""
        sid = subscription.subscription_id
        if resource_name:
            return [self.client.get_resource(sid, resource_type, resource_group, resource_name)]
        return self.client.list_resources(sid, resource_type)

    def collect(self, resource_type: str, resource_name: Optional[str] = None,
                resource_group: Optional[str] = None) -> CollectionResult:
        """
        Collect tags for resource_type from every subscription.

        Not-found results are warnings, any other error is logged and the next
        subscription is processed. Records come back normalized to one column set.
        """
        flattener = TagFlattener()
        result = CollectionResult(resource_type=resource_type)

        for subscription in self.subscriptions:
            sid = subscription.subscription_id
            label = f"{subscription.display_name} ({sid})" if subscription.display_name else sid
            logger.debug(f"Querying {resource_type} in subscription {label}")

            try:
                resources = self.query_subscription(subscription, resource_type, resource_name, resource_group)
                for res in resources:
                    logger.debug(f"{res.resource_type} {res.name} in {res.resource_group or '-'} ({res.subscription_id})")
                added = flattener.add_resources(resources)
                logger.info(f"Found {added} {resource_type} resource(s) in subscription {label}")
            except (ResourceNotFound, ResourceNotFoundError) as e:
                logger.warning(f"No {resource_type} resources in subscription {label}: {e}")
                result.not_found.append(sid)
            except Exception as e:
                logger.error(f"Error querying {resource_type} in subscription {label}: {e}")
                result.failed.append(sid)

        result.records = flattener.normalize()
        result.tag_keys = sorted(flattener.tag_keys)
        return result
