"""
Typed service errors. Routes let these propagate and the app maps them to
HTTP responses.
"""

from __future__ import annotations


class FluzioError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(FluzioError):
    status_code = 404
    code = "not_found"


class ValidationError(FluzioError):
    status_code = 400
    code = "validation_error"


class ConflictError(FluzioError):
    status_code = 409
    code = "conflict"


class InsufficientPointsError(ConflictError):
    code = "insufficient_points"

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Insufficient points: {required} required, {available} available"
        )
        self.required = required
        self.available = available


class RateLimitError(FluzioError):
    status_code = 429
    code = "rate_limited"


class ForbiddenError(FluzioError):
    status_code = 403
    code = "forbidden"
