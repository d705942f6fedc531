"""Error taxonomy shared by the services and the HTTP layer.

Services raise :class:`CoreError` for validation and authorization failures.
The API layer turns the kind into a status code and a stable ``error`` field,
so callers can render a specific message for every failure.
"""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID = "invalid"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    PARENT_NOT_FOUND = "parent_not_found"
    MAX_DEPTH = "max_depth"
    INVALID_CODE = "invalid_code"
    USED = "used"
    EXPIRED = "expired"
    EMAIL_IN_USE = "email_in_use"
    USERNAME_IN_USE = "username_in_use"
    CREATE_FAILED = "create_failed"
    SERVER = "server"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID: 400,
    ErrorKind.MAX_DEPTH: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PARENT_NOT_FOUND: 404,
    ErrorKind.INVALID_CODE: 404,
    ErrorKind.USED: 409,
    ErrorKind.EMAIL_IN_USE: 409,
    ErrorKind.USERNAME_IN_USE: 409,
    ErrorKind.EXPIRED: 410,
    ErrorKind.CREATE_FAILED: 500,
    ErrorKind.SERVER: 500,
}


class CoreError(Exception):
    """A failure with a stable, enumerable reason code."""

    def __init__(self, kind: ErrorKind, detail: str | None = None):
        self.kind = kind
        self.detail = detail
        super().__init__(detail or kind.value)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]
