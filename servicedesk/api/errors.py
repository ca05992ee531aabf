from __future__ import annotations

from fastapi import HTTPException, status

from servicedesk.core.errors import (
    DependencyFailureError,
    ForbiddenChangeError,
    InvalidTransitionError,
    NotFoundError,
    TicketServiceError,
    TicketValidationError,
)

_STATUS_BY_ERROR: tuple[tuple[type[TicketServiceError], int], ...] = (
    (TicketValidationError, status.HTTP_400_BAD_REQUEST),
    (ForbiddenChangeError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (DependencyFailureError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_error(exc: TicketServiceError) -> HTTPException:
    """Translate a domain error into the matching HTTP error."""

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
