"""Microsoft Graph session management operations."""
from __future__ import annotations

from .client import GraphClient


class SessionService:
    """Service for revoking user sign-in sessions."""

    def __init__(self, client: GraphClient):
        """Initialize session service.

        Args:
            client: Authenticated Graph client
        """
        self.client = client

    def revoke_sessions(self, object_id: str) -> bool:
        """Invalidate all refresh tokens and session cookies issued to the user.

        Args:
            object_id: User object id

        Returns:
            The value reported by Graph (True when revocation was accepted)
        """
        resp = self.client.post(f"/users/{object_id}/revokeSignInSessions")
        body = resp.json() if resp.content else {}
        return bool(body.get("value", True))
