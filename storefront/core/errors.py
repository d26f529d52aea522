"""Order lifecycle error taxonomy.

Every ``OrderError`` is an expected outcome the caller can act on and maps
to a distinct HTTP status. ``DataIntegrityError`` and ``StoreUnavailableError``
are not business outcomes: they are logged and reported as generic failures.
"""
from typing import Optional


class OrderError(Exception):
    status_code = 400
    kind = "order_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(OrderError):
    status_code = 404
    kind = "not_found"


class ForbiddenError(OrderError):
    status_code = 403
    kind = "forbidden"


class InvalidStateError(OrderError):
    status_code = 409
    kind = "invalid_state"


class ValidationError(OrderError):
    status_code = 422
    kind = "validation"


class ConflictError(OrderError):
    status_code = 409
    kind = "conflict"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        # "draft", "order_number" or "version"
        self.field = field


class DataIntegrityError(Exception):
    """A stored order holds a value outside the known model"""


class StoreUnavailableError(Exception):
    """The persistence backend failed or timed out"""
