"""Custom exceptions for SplitBiller."""


class SplitBillerError(Exception):
    """Base exception for all SplitBiller errors."""

    pass


class ConfigurationError(SplitBillerError):
    """Raised when configuration is invalid or missing."""

    pass


class NotLoggedInError(SplitBillerError):
    """Raised when an operation needs a session and none is active."""

    def __init__(self, message: str | None = None):
        super().__init__(message or "Not logged in. Run 'splitbiller login' first.")


class APIError(SplitBillerError):
    """Raised when a SplitBiller API request fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class SessionExpiredError(APIError):
    """Raised on a 401 response, after the local session has been cleared."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message or "Session expired. Please log in again.", status_code=401
        )


class NotFoundError(APIError):
    """Raised when the API answers 404."""

    pass


class ExpenseValidationError(SplitBillerError):
    """Raised when an expense draft fails client-side validation."""

    pass


class NothingToSettleError(SplitBillerError):
    """Raised when settling a debt finds no unsettled splits."""

    def __init__(self, member_name: str):
        self.member_name = member_name
        super().__init__(f"No unsettled expenses with {member_name}")
