"""
Tavern error types.

Services raise these; the FastAPI exception handlers in pixel_tavern.main
turn them into ErrorResponse bodies, and the WebSocket hub turns them into
`error` envelopes.
"""


class TavernError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 500
    code = "TAVERN_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TavernError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(TavernError):
    status_code = 409
    code = "CONFLICT"


class TavernValidationError(TavernError):
    status_code = 400
    code = "INVALID_REQUEST"


class InvalidActionError(TavernValidationError):
    """Unknown action name, or an action with no registered handler."""
    code = "INVALID_ACTION"


class InsufficientFundsError(TavernValidationError):
    code = "INSUFFICIENT_FUNDS"


class AuthenticationError(TavernError):
    status_code = 401
    code = "INVALID_CREDENTIALS"
