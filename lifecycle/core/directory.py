"""Directory capability interface consumed by the lifecycle operations.

Operations and the batch processor depend only on ``DirectoryClient``;
``GraphDirectory`` implements it against Microsoft Graph.
"""
from __future__ import annotations
from typing import Iterable, Optional, Protocol

from .graph import (
    GraphClient,
    GroupService,
    LicenseService,
    LicenseNotFoundError,
    SessionService,
    UserService,
)
from .models import Group, IdentityRecord


class DirectoryClient(Protocol):
    """Capabilities a directory backend must provide."""

    def is_authenticated(self) -> bool: ...

    def create_user(
        self,
        user_principal_name: str,
        display_name: str,
        password: str,
        force_change_password: bool = True,
        department: Optional[str] = None,
        job_title: Optional[str] = None,
        usage_location: Optional[str] = None,
    ) -> IdentityRecord: ...

    def get_user(self, identifier: str) -> Optional[IdentityRecord]: ...

    def update_user(self, object_id: str, changes: dict) -> None: ...

    def set_manager(self, object_id: str, manager_id: str) -> None: ...

    def clear_manager(self, object_id: str) -> bool: ...

    def find_group(self, name_or_id: str) -> Optional[Group]: ...

    def add_group_member(self, group_id: str, object_id: str) -> bool: ...

    def remove_group_member(self, group_id: str, object_id: str) -> bool: ...

    def get_group_memberships(self, object_id: str) -> list[Group]: ...

    def resolve_license(self, identifier: str) -> Optional[str]: ...

    def get_assigned_licenses(self, object_id: str) -> set[str]: ...

    def set_assigned_licenses(self, object_id: str, sku_ids: Iterable[str]) -> None: ...

    def revoke_sessions(self, object_id: str) -> bool: ...

    def delete_user(self, object_id: str) -> None: ...


class GraphDirectory:
    """``DirectoryClient`` backed by Microsoft Graph."""

    def __init__(self, client: GraphClient):
        self.client = client
        self.users = UserService(client)
        self.groups = GroupService(client)
        self.licenses = LicenseService(client)
        self.sessions = SessionService(client)

    def is_authenticated(self) -> bool:
        return self.client.is_authenticated()

    def create_user(self, user_principal_name, display_name, password, force_change_password=True,
                    department=None, job_title=None, usage_location=None) -> IdentityRecord:
        return self.users.create_user(
            user_principal_name,
            display_name,
            password,
            force_change_password=force_change_password,
            department=department,
            job_title=job_title,
            usage_location=usage_location,
        )

    def get_user(self, identifier: str) -> Optional[IdentityRecord]:
        return self.users.get_user(identifier)

    def update_user(self, object_id: str, changes: dict) -> None:
        self.users.update_user(object_id, changes)

    def set_manager(self, object_id: str, manager_id: str) -> None:
        self.users.set_manager(object_id, manager_id)

    def clear_manager(self, object_id: str) -> bool:
        return self.users.clear_manager(object_id)

    def find_group(self, name_or_id: str) -> Optional[Group]:
        return self.groups.find_group(name_or_id)

    def add_group_member(self, group_id: str, object_id: str) -> bool:
        return self.groups.add_member(group_id, object_id)

    def remove_group_member(self, group_id: str, object_id: str) -> bool:
        return self.groups.remove_member(group_id, object_id)

    def get_group_memberships(self, object_id: str) -> list[Group]:
        return self.groups.get_memberships(object_id)

    def resolve_license(self, identifier: str) -> Optional[str]:
        try:
            return self.licenses.resolve_sku_id(identifier)
        except LicenseNotFoundError:
            return None

    def get_assigned_licenses(self, object_id: str) -> set[str]:
        return self.licenses.get_assigned_licenses(object_id)

    def set_assigned_licenses(self, object_id: str, sku_ids: Iterable[str]) -> None:
        self.licenses.set_assigned_licenses(object_id, sku_ids)

    def revoke_sessions(self, object_id: str) -> bool:
        return self.sessions.revoke_sessions(object_id)

    def delete_user(self, object_id: str) -> None:
        self.users.delete_user(object_id)
