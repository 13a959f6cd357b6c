"""
Error taxonomy surfaced by the service layer. Storage-specific errors are
translated into these before they reach a caller.
"""


class ServiceError(Exception):
    """
    Base for all errors reported to callers. `status_code` is the HTTP status
    the transport answers with.
    """

    status_code: int = 500
    detail: str = "Internal error"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class Unauthenticated(ServiceError):
    status_code = 401
    detail = "Invalid token"


class PermissionDenied(ServiceError):
    status_code = 403
    detail = "Permission denied"


class InvalidArgument(ServiceError):
    status_code = 400
    detail = "Invalid argument"


class NotFound(ServiceError):
    status_code = 404
    detail = "Not found"


class AlreadyExists(ServiceError):
    status_code = 409
    detail = "Already exists"


class FailedPrecondition(ServiceError):
    status_code = 400
    detail = "Failed precondition"


class DeadlineExceeded(ServiceError):
    status_code = 504
    detail = "Deadline exceeded"


class Internal(ServiceError):
    status_code = 500
    detail = "Internal error"
