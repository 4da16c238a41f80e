"""Microsoft Graph group management operations."""
from __future__ import annotations
import re
from typing import Optional

from .client import GraphClient
from .exceptions import DirectoryAPIError
from ..models import Group

GUID_PATTERN = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")


def is_guid(value: str) -> bool:
    return bool(GUID_PATTERN.match(value or ""))


class GroupService:
    """Service for managing directory groups."""

    def __init__(self, client: GraphClient):
        """Initialize group service.

        Args:
            client: Authenticated Graph client
        """
        self.client = client

    def find_group(self, name_or_id: str) -> Optional[Group]:
        """Resolve a group by object id or exact display name.

        Args:
            name_or_id: Group object id or display name

        Returns:
            Group or None if nothing matches exactly
        """
        if is_guid(name_or_id):
            try:
                resp = self.client.get(f"/groups/{name_or_id}", params={"$select": "id,displayName"})
                return Group.from_graph(resp.json())
            except DirectoryAPIError as e:
                if e.status_code != 404:
                    raise

        escaped = name_or_id.replace("'", "''")
        resp = self.client.get(
            "/groups",
            params={"$filter": f"displayName eq '{escaped}'", "$select": "id,displayName"},
        )
        # Exact match on display name
        for group in resp.json().get("value", []):
            if group.get("displayName") == name_or_id:
                return Group.from_graph(group)
        return None

    def add_member(self, group_id: str, object_id: str) -> bool:
        """Add a user to a group (idempotent).

        Returns:
            True if added, False if already a member
        """
        try:
            self.client.post(
                f"/groups/{group_id}/members/$ref",
                json={"@odata.id": f"{self.client.base_url}/directoryObjects/{object_id}"},
            )
        except DirectoryAPIError as e:
            if e.status_code == 400 and "already exist" in e.message.lower():
                return False
            raise
        return True

    def remove_member(self, group_id: str, object_id: str) -> bool:
        """Remove a user from a group (idempotent).

        Returns:
            True if removed, False if not a member
        """
        try:
            self.client.delete(f"/groups/{group_id}/members/{object_id}/$ref")
        except DirectoryAPIError as e:
            if e.status_code == 404:
                return False
            raise
        return True

    def get_memberships(self, object_id: str) -> list[Group]:
        """Return the groups the user is a direct member of."""
        return [
            Group.from_graph(item)
            for item in self.client.get_all(
                f"/users/{object_id}/memberOf/microsoft.graph.group",
                params={"$select": "id,displayName"},
            )
        ]
