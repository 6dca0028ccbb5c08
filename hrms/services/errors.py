class DepartmentError(Exception):
    """Base class for department hierarchy failures.

    Every subclass is a synchronous, non-retryable precondition failure.
    ``status_code`` and ``code`` are what the HTTP layer renders.
    """

    status_code = 400
    code = "department_error"

    def __init__(self, message: str, **details) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class DepartmentNotFound(DepartmentError):
    status_code = 404
    code = "not_found"


class DepartmentAlreadyExists(DepartmentError):
    status_code = 409
    code = "already_exists"


class InvalidDepartmentOperation(DepartmentError):
    status_code = 400
    code = "invalid_operation"


class DepartmentConflict(DepartmentError):
    status_code = 409
    code = "conflict"


__all__ = [
    "DepartmentError",
    "DepartmentNotFound",
    "DepartmentAlreadyExists",
    "InvalidDepartmentOperation",
    "DepartmentConflict",
]
