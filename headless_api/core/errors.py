"""Error taxonomy for the REST API and bearer authentication layer.

Each error knows the HTTP status it maps to and the message that is safe to
show a client. Server-side failures (storage, dependencies) never expose
their details; the client always sees ``{"error": "error"}``.
"""


class HeadlessAPIError(Exception):
    """Base error for the headless API."""

    status_code: int = 500
    public_message: str = "error"

    def __init__(self, message: str | None = None, *, public_message: str | None = None):
        super().__init__(message or self.public_message)
        if public_message is not None:
            self.public_message = public_message

    def to_body(self) -> dict[str, str]:
        return {"error": self.public_message}


class ValidationError(HeadlessAPIError):
    """Malformed or missing request fields."""

    status_code = 400
    public_message = "invalid request"


class AuthenticationError(HeadlessAPIError):
    """Bad credentials, or an invalid/expired bearer token."""

    status_code = 401
    public_message = "unauthorized"


class InvalidBearerTokenError(AuthenticationError):
    """A presented bearer token is unknown or expired."""

    public_message = "bearer token invalid"


class AuthorizationError(HeadlessAPIError):
    """The request has no identity allowed to perform the action."""

    status_code = 403
    public_message = "forbidden"


class CSRFError(AuthorizationError):
    """A session-authenticated request failed CSRF verification."""

    public_message = "csrf"


class StorageError(HeadlessAPIError):
    """The token datastore failed or timed out."""

    status_code = 500


class DependencyError(HeadlessAPIError):
    """An injected collaborator (verifier, deserializer) failed or timed out."""

    status_code = 500
