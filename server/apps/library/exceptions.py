"""Exceptions for library app.

Each exception also derives from the Django exception that the request
handler already maps to the matching HTTP response, so a view layer can
let them propagate.
"""

from http import HTTPStatus
from typing import ClassVar

from django.core.exceptions import BadRequest, PermissionDenied
from django.http import Http404


class LibraryError(Exception):
    """Base class for failures raised by the library logic layer."""

    status_code: ClassVar[HTTPStatus] = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        """Initialize LibraryError.

        Args:
            message: Human readable description of the failure.
        """
        self.message = message
        super().__init__(message)


class NotFoundError(LibraryError, Http404):
    """Raised when a folder, file, user or permission does not exist."""

    status_code = HTTPStatus.NOT_FOUND


class ForbiddenError(LibraryError, PermissionDenied):
    """Raised when the caller lacks the required role or ownership."""

    status_code = HTTPStatus.FORBIDDEN


class ConflictError(LibraryError):
    """Raised when a permission already exists for a resource and user."""

    status_code = HTTPStatus.CONFLICT


class BadRequestError(LibraryError, BadRequest):
    """Raised when a request violates a hierarchy or batch precondition."""

    status_code = HTTPStatus.BAD_REQUEST
