"""
Error types raised by the Danbooru Explorer services.
"""

from typing import Optional


class DanbooruError(Exception):
    """Base class for all Danbooru Explorer errors."""


class InvalidResponseError(DanbooruError):
    """The transport returned something that is not a usable HTTP response."""

    def __init__(self, message: str = "Invalid server response"):
        super().__init__(message)


class ServerError(DanbooruError):
    """The server answered with a status outside 200-299."""

    def __init__(self, status: int):
        super().__init__(f"Server error (status {status})")
        self.status = status


class DecodingError(DanbooruError):
    """The response body did not match the expected schema."""

    def __init__(self, cause: Exception):
        super().__init__(f"Failed to decode response: {cause}")
        self.cause = cause


class MissingCredentialsError(DanbooruError):
    """An authenticated operation was attempted without usable credentials."""

    def __init__(self):
        super().__init__("Username and API key are required for this action")


class TransportError(DanbooruError):
    """Network-level failure: offline, timeout or connection failure."""

    def __init__(self, cause: Exception):
        super().__init__(f"Network error: {cause}")
        self.cause = cause


class CredentialsStoreError(DanbooruError):
    """The secure credential backend reported an unexpected status."""

    def __init__(self, status: str):
        super().__init__(f"Credential store failure: {status}")
        self.status = status


class ImageDecodeError(DanbooruError):
    """Downloaded bytes could not be decoded into an image."""


class ImageLoadError(DanbooruError):
    """An image could not be loaded from any source."""

    def __init__(self, message: str = "Cannot load image from network"):
        super().__init__(message)


AUTH_FAILURE_STATUSES = (401, 403)


def is_authentication_failure(error: BaseException) -> bool:
    """Whether an error means the stored credentials can no longer be trusted."""
    if isinstance(error, MissingCredentialsError):
        return True
    return isinstance(error, ServerError) and error.status in AUTH_FAILURE_STATUSES


def describe_error(error: BaseException) -> str:
    """
    Get a user-facing message for an error.

    Args:
        error: Exception raised by a service call

    Returns:
        Message with guidance matching the kind of failure
    """
    if isinstance(error, MissingCredentialsError):
        return "Authenticate with Danbooru (API key + username) to use this action."
    if isinstance(error, ServerError):
        if error.status in AUTH_FAILURE_STATUSES:
            return "Insufficient permissions or invalid credentials. Check your username and API key."
        return f"Server error (status {error.status}). Try again later."
    if isinstance(error, DecodingError):
        return f"Failed to parse server response: {error.cause}"
    if isinstance(error, InvalidResponseError):
        return "Invalid server response."
    if isinstance(error, (TransportError, ImageLoadError)):
        return f"{error} (check your internet connection)"
    if isinstance(error, CredentialsStoreError):
        return f"Could not access the credential store: {error.status}"
    return str(error) or error.__class__.__name__


def authentication_failure_message(error: BaseException) -> Optional[str]:
    """Get the session-level message for an auth failure, None otherwise."""
    if isinstance(error, MissingCredentialsError):
        return "Enter your Danbooru credentials"
    if is_authentication_failure(error):
        return "Invalid Danbooru credentials"
    return None
