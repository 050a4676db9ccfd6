"""
Domain exceptions raised by the service layer.

Each exception carries the HTTP status and short error label it maps to; the
handlers registered in ``app.main`` turn them into the common error body.
"""

from typing import Any


class OrderHubError(Exception):
    """Base exception for all order hub errors."""

    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(OrderHubError):
    """Raised when a referenced entity does not exist."""

    status_code = 404
    error = "Not Found"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found with ID: {entity_id}")


class ConflictError(OrderHubError):
    """Raised when a write would duplicate a unique identity."""

    status_code = 409
    error = "Conflict"


class InvalidRelationshipError(OrderHubError):
    """Raised when a resource is addressed through a parent it does not belong to."""

    status_code = 400
    error = "Bad Request"


class RequestValidationFailed(OrderHubError):
    """Raised for malformed request input that pydantic does not catch."""

    status_code = 400
    error = "Bad Request"
