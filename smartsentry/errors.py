"""SmartSentry — Client error taxonomy

Every error raised across the client boundary is an ApiError carrying a
human-readable message. Transport exceptions are chained, never exposed
as the message.
"""


class ApiError(Exception):
    """Base class for classified API errors."""

    kind = "api_error"
    retryable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __repr__(self):
        return f"{type(self).__name__}({self.message!r})"


class NoCredential(ApiError):
    """An auth-required call was made with no stored token."""

    kind = "no_credential"

    def __init__(self, message: str = "You are not logged in. Please log in and try again."):
        super().__init__(message)


class AuthExpired(ApiError):
    """The server answered 401; the stored token has been cleared."""

    kind = "auth_expired"

    def __init__(self, message: str = "Your session has expired. Please log in again."):
        super().__init__(message)


class AccessDenied(ApiError):
    kind = "access_denied"

    def __init__(self, message: str = "You do not have permission to perform this action."):
        super().__init__(message)


class NetworkError(ApiError):
    """Transport-level failure (DNS, refused connection, TLS, ...)."""

    kind = "network_error"
    retryable = True


class RequestTimeout(NetworkError):
    kind = "timeout"


class RequestFailed(ApiError):
    """Non-2xx response other than 401/403."""

    kind = "request_failed"

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class HistoryLoadError(ApiError):
    """Emergency history could not be fetched and nothing was cached."""

    kind = "history_unavailable"

    ENDPOINT_NOT_FOUND = "endpoint not found"
    AUTHENTICATION_FAILED = "authentication failed"
    NETWORK = "network/timeout"
    OTHER = "other"

    def __init__(self, message: str, category: str = OTHER):
        super().__init__(message)
        self.category = category
