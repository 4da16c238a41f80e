"""Microsoft Graph user management operations."""
from __future__ import annotations
import re
from typing import Optional
from urllib.parse import quote

from .client import GraphClient
from .exceptions import DirectoryAPIError, UserAlreadyExistsError, UserNotFoundError
from ..models import ATTRIBUTE_FIELDS, IdentityRecord

USER_SELECT = ",".join(["id", "userPrincipalName", "accountEnabled", "assignedLicenses", *ATTRIBUTE_FIELDS.values()])


def _user_path(identifier: str) -> str:
    return f"/users/{quote(identifier, safe='@')}"


def _mail_nickname(user_principal_name: str) -> str:
    local = user_principal_name.split("@", 1)[0]
    return re.sub(r"[^A-Za-z0-9._-]", "", local)[:64] or "user"


def to_graph_attributes(changes: dict) -> dict:
    """Translate attribute names into a Graph PATCH payload."""
    payload = {}
    for name, value in changes.items():
        if name == "account_enabled":
            payload["accountEnabled"] = bool(value)
        elif name == "office_phone":
            payload["businessPhones"] = [value] if value else []
        elif name in ATTRIBUTE_FIELDS:
            payload[ATTRIBUTE_FIELDS[name]] = value or None
        else:
            raise ValueError(f"Unknown user attribute '{name}'")
    return payload


class UserService:
    """Service for managing directory users."""

    def __init__(self, client: GraphClient):
        """Initialize user service.

        Args:
            client: Authenticated Graph client
        """
        self.client = client

    def get_user(self, identifier: str) -> Optional[IdentityRecord]:
        """Return the user addressed by principal name or object id.

        Args:
            identifier: userPrincipalName or object id

        Returns:
            IdentityRecord or None if not found (soft-deleted users are not returned)
        """
        try:
            resp = self.client.get(
                _user_path(identifier),
                params={
                    "$select": USER_SELECT,
                    "$expand": "manager($select=id,userPrincipalName)",
                },
            )
        except DirectoryAPIError as e:
            if e.status_code == 404:
                return None
            raise
        return IdentityRecord.from_graph(resp.json())

    def create_user(
        self,
        user_principal_name: str,
        display_name: str,
        password: str,
        force_change_password: bool = True,
        department: Optional[str] = None,
        job_title: Optional[str] = None,
        usage_location: Optional[str] = None,
    ) -> IdentityRecord:
        """Create an enabled user with an initial password profile.

        Raises:
            UserAlreadyExistsError: If the principal name is taken
        """
        payload = {
            "accountEnabled": True,
            "displayName": display_name,
            "mailNickname": _mail_nickname(user_principal_name),
            "userPrincipalName": user_principal_name,
            "passwordProfile": {
                "forceChangePasswordNextSignIn": force_change_password,
                "password": password,
            },
        }
        if department:
            payload["department"] = department
        if job_title:
            payload["jobTitle"] = job_title
        if usage_location:
            payload["usageLocation"] = usage_location

        try:
            resp = self.client.post("/users", json=payload)
        except DirectoryAPIError as e:
            if e.status_code in (400, 409) and "already exists" in e.message.lower():
                raise UserAlreadyExistsError(f"User '{user_principal_name}' already exists") from e
            raise
        return IdentityRecord.from_graph(resp.json())

    def update_user(self, object_id: str, changes: dict) -> None:
        """Apply attribute changes in a single PATCH."""
        payload = to_graph_attributes(changes)
        if payload:
            self.client.patch(_user_path(object_id), json=payload)

    def set_manager(self, object_id: str, manager_id: str) -> None:
        self.client.put(
            f"{_user_path(object_id)}/manager/$ref",
            json={"@odata.id": f"{self.client.base_url}/users/{manager_id}"},
        )

    def clear_manager(self, object_id: str) -> bool:
        """Remove the manager reference.

        Returns:
            True if a manager was removed, False if none was set
        """
        try:
            self.client.delete(f"{_user_path(object_id)}/manager/$ref")
        except DirectoryAPIError as e:
            if e.status_code == 404:
                return False
            raise
        return True

    def delete_user(self, object_id: str) -> None:
        """Soft-delete a user; it stays restorable from deleted items for 30 days.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        try:
            self.client.delete(_user_path(object_id))
        except DirectoryAPIError as e:
            if e.status_code == 404:
                raise UserNotFoundError(f"User '{object_id}' not found") from e
            raise
