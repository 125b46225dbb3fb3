"""Service errors. Each maps to an HTTP status and an ``{"error": message}`` body."""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DataSourceError(ServiceError):
    """Backing store query failed (network, auth or schema)."""

    status_code = 500

    def __init__(self, message: str, action: str = "") -> None:
        super().__init__(message)
        self.action = action


class ValidationError(ServiceError):
    """Malformed query parameters."""

    status_code = 400


class UnauthorizedError(ServiceError):
    status_code = 401
