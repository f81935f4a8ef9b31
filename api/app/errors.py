"""Domain errors raised by the matching and messaging services.

Each HTTP-facing error carries the status code and a short machine-readable
``code`` so the route layer can translate it without inspecting messages.
"""


class MatchCoreError(Exception):
    status_code = 500
    code = "internal_error"
    default_detail = "Unexpected error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationFailed(MatchCoreError):
    status_code = 400
    code = "invalid_request"
    default_detail = "Invalid request data"


class AlreadyActedError(MatchCoreError):
    status_code = 400
    code = "already_acted"
    default_detail = "Already acted on this user"


class NotAllowedError(MatchCoreError):
    status_code = 403
    code = "not_allowed"
    default_detail = "Action not allowed"


class NotFoundError(MatchCoreError):
    status_code = 404
    code = "not_found"
    default_detail = "Not found"


class TransportError(Exception):
    """Publishing to or connecting with the realtime transport failed."""

    def __init__(self, message: str, *, channel: str | None = None, event: str | None = None):
        self.channel = channel
        self.event = event
        super().__init__(message)


class ApiError(MatchCoreError):
    """Unexpected response from the HTTP API, seen from the client side."""

    code = "api_error"
    default_detail = "API request failed"

    def __init__(self, detail: str | None = None, *, status_code: int = 500):
        self.status_code = status_code
        super().__init__(detail)
