"""Domain errors raised by the service layer.

REST handlers turn these into JSON responses (see ``planner.main``). Chat
tools never let them escape; they return tagged ``{"error": ...}`` values.
"""


class PlannerError(Exception):
    status_code = 400
    error = "Bad request"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.error)
        self.detail = detail or self.error


class Unauthorized(PlannerError):
    status_code = 401
    error = "Unauthorized"


class Forbidden(PlannerError):
    status_code = 403
    error = "Forbidden"


class NotFound(PlannerError):
    status_code = 404
    error = "Not found"


class InvalidInput(PlannerError):
    status_code = 422
    error = "Invalid input"


class QuotaExceeded(PlannerError):
    status_code = 429
    error = "AI usage limit reached"


class ServiceUnavailable(PlannerError):
    status_code = 503
    error = "Service unavailable"
