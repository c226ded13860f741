"""
Error taxonomy for the landing API.

Every error carries an internal `message` (logged) and a `public_message`
(returned to the browser as `{"error": ...}`), so driver details never leak
into responses.
"""

from typing import Optional


class LandingError(Exception):
    """Base class for all errors the API maps to a JSON response."""

    code = "INTERNAL_ERROR"
    http_status = 500
    default_public_message = "An unexpected error occurred"

    def __init__(self, message: str, public_message: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.public_message = public_message or self.default_public_message

    def to_response(self) -> dict:
        return {"error": self.public_message}


class InvalidInput(LandingError):
    """Missing or malformed client input. Raised before any I/O."""

    code = "INVALID_INPUT"
    http_status = 400
    default_public_message = "Invalid request"


class AssetNotFound(LandingError):
    code = "ASSET_NOT_FOUND"
    http_status = 404
    default_public_message = "File not found"


class PersistenceFailure(LandingError):
    """A DynamoDB read or write failed. Not retried by the handlers."""

    code = "PERSISTENCE_FAILURE"
    http_status = 500
    default_public_message = "Database operation failed"

    def __init__(self, message: str, operation: str, public_message: Optional[str] = None):
        super().__init__(message, public_message)
        self.operation = operation


class ConnectionFailure(PersistenceFailure):
    """
    The database handle could not be established.

    Subclasses PersistenceFailure so a handler that surfaces write errors also
    surfaces connection errors with the same public message.
    """

    code = "CONNECTION_FAILURE"
    default_public_message = "Database connection error"

    def __init__(self, message: str, public_message: Optional[str] = None):
        super().__init__(message, "connect", public_message)
