"""
Error taxonomy for the portfolio API.

Every error carries the HTTP status it maps to and the message that is safe
to return to a client. Upstream and infrastructure failures keep their cause
for server-side logging only.
"""

from typing import Optional


class PortfolioError(Exception):
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message

    def to_response(self) -> dict:
        return {"message": self.message}


class ValidationError(PortfolioError):
    """Client input failed coercion or schema validation."""

    status_code = 400

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}" if field else reason)

    def to_response(self) -> dict:
        return {"message": self.message, "field": self.field}


class NotFoundError(PortfolioError):
    status_code = 404

    def __init__(self, entity: str = "Resource"):
        super().__init__(f"{entity} not found")


class AuthError(PortfolioError):
    status_code = 401
    public_message = "Not authorized"

    def __init__(self, message: Optional[str] = None, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


class UpstreamError(PortfolioError):
    """The media host or the mail sender failed."""

    status_code = 502
    public_message = "Upstream service failed"

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class InfrastructureError(PortfolioError):
    """The document store is unreachable or erroring."""

    status_code = 500
    public_message = "Database error"

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None,
                 not_connected: bool = False):
        if not_connected:
            message = message or "Database not connected. Please check your MongoDB connection."
        super().__init__(message)
        self.cause = cause
        self.not_connected = not_connected
        if not_connected:
            self.status_code = 503

    def to_response(self) -> dict:
        body = {"message": self.message}
        if self.not_connected:
            body["error"] = "DATABASE_CONNECTION_ERROR"
        return body
