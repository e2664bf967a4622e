from fastapi import HTTPException, status

from ..services.errors import (
    ServiceError, ValidationError, ProfileIncompleteError, AuthorizationError, NotFoundError, ConflictError,
)

STATUS_BY_ERROR = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ProfileIncompleteError: status.HTTP_400_BAD_REQUEST,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
}


def to_http_exception(error: ServiceError) -> HTTPException:
    """
    Maps a service error to its HTTP form. The body carries a machine readable
    code so clients can tell e.g. an incomplete profile from a bad request.
    """
    status_code = next(
        (code for error_type, code in STATUS_BY_ERROR.items() if isinstance(error, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    return HTTPException(status_code=status_code, detail={"message": str(error), "code": error.code})
