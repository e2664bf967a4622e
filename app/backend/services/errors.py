# --- Service layer exception classes ---

class ServiceError(Exception):
    """General exception class for the service layer."""
    code = "service_error"


class ValidationError(ServiceError):
    """Missing or malformed input, e.g. no proofs or no event reference."""
    code = "validation_error"


class ProfileIncompleteError(ServiceError):
    """A student account without a Student profile tried to submit."""
    code = "profile_incomplete"


class AuthorizationError(ServiceError):
    """The actor's role does not allow the operation."""
    code = "forbidden"


class NotFoundError(ServiceError):
    code = "not_found"


class ConflictError(ServiceError):
    """The target is no longer in a state that allows the operation."""
    code = "conflict"
