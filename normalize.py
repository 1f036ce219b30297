"""
Tag Normalization - Hidden-link filtering, tag key collection and column alignment.
"""

import logging
from typing import Dict, Any, List, Iterable, Optional, Set

logger = logging.getLogger(__name__)

RESOURCE_NAME_COLUMN = 'ResourceName'
HIDDEN_LINK_PREFIX = 'hidden-link'


def is_hidden_link(key: str) -> bool:
    """Provider-managed link tags are never exported."""
    return key.lower().startswith(HIDDEN_LINK_PREFIX)


class TagFlattener:
    """
    Turns resource tag maps into flat export records for a single resource type.
    """

    def __init__(self):
        self.tag_keys: Set[str] = set()
        # lowercased key -> first spelling seen
        self._spellings: Dict[str, str] = {}
        self.records: List[Dict[str, Any]] = []

    def add_resource(self, name: str, tags: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Record one resource. Keys starting with 'hidden-link' are dropped,
        every other key joins the tag key set. Keys differing only in case
        share one column, spelled the way it was first seen.
        """
        record = {RESOURCE_NAME_COLUMN: name}
        for key, value in (tags or {}).items():
            if is_hidden_link(key):
                logger.debug(f"Skipping hidden-link tag '{key}' on {name}")
                continue
            if key.lower() == RESOURCE_NAME_COLUMN.lower():
                logger.warning(f"Ignoring tag named {RESOURCE_NAME_COLUMN} on {name}")
                continue
            column = self._spellings.setdefault(key.lower(), key)
            self.tag_keys.add(column)
            record[column] = '' if value is None else str(value)

        self.records.append(record)
        return record

    def add_resources(self, resources: Iterable) -> int:
        """Record every resource (anything with .name and .tags). Returns the count added."""
        count = 0
        for resource in resources:
            self.add_resource(resource.name, resource.tags)
            count += 1
        return count

    @property
    def columns(self) -> List[str]:
        return [RESOURCE_NAME_COLUMN] + sorted(self.tag_keys)

    def normalize(self) -> List[Dict[str, Any]]:
        """
        Return records that all carry every column, missing tags as empty strings.
        """
        columns = self.columns
        return [{column: record.get(column, '') for column in columns} for record in self.records]
