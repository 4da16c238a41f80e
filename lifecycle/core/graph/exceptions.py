"""Directory-specific exceptions for error handling."""


class DirectoryError(Exception):
    """Base exception for all directory operations."""
    pass


class DirectoryAPIError(DirectoryError):
    """HTTP error from the Microsoft Graph API.
    
    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """
    
    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class NotAuthenticatedError(DirectoryError):
    """No access token is available - authenticate before calling the API."""
    pass


class UserNotFoundError(DirectoryError):
    """User lookup failed - principal name or object id does not exist."""
    pass


class UserAlreadyExistsError(DirectoryError):
    """User creation failed - principal name already exists."""
    pass


class LicenseNotFoundError(DirectoryError):
    """License SKU is not subscribed in the tenant."""
    pass
