"""Microsoft Graph API client library.

This package provides a modular, testable interface to the Graph
operations the lifecycle workflows need.

Architecture:
- client.py: HTTP client with authentication and auto-refresh
- users.py: User create, lookup, attribute update, manager, soft-delete
- groups.py: Group lookup and membership
- licenses.py: License SKU resolution and assignment
- sessions.py: Sign-in session revocation
- exceptions.py: Typed exceptions for error handling

Usage:
    from lifecycle.core.graph import GraphClient, UserService

    client = GraphClient()
    client.authenticate_client_credentials(tenant_id, client_id, client_secret)

    user_service = UserService(client)
    user = user_service.get_user("alice@contoso.com")
"""
from .client import (
    GraphClient,
    create_client_with_token,
    REQUEST_TIMEOUT,
)
from .exceptions import (
    DirectoryError,
    DirectoryAPIError,
    NotAuthenticatedError,
    UserNotFoundError,
    UserAlreadyExistsError,
    LicenseNotFoundError,
)
from .users import UserService
from .groups import GroupService, is_guid
from .licenses import LicenseService
from .sessions import SessionService

__all__ = [
    # Client
    "GraphClient",
    "create_client_with_token",
    "REQUEST_TIMEOUT",

    # Exceptions
    "DirectoryError",
    "DirectoryAPIError",
    "NotAuthenticatedError",
    "UserNotFoundError",
    "UserAlreadyExistsError",
    "LicenseNotFoundError",

    # Services
    "UserService",
    "GroupService",
    "LicenseService",
    "SessionService",
    "is_guid",
]
