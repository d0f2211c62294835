"""Error taxonomy raised by the session engine.

Each error carries a stable machine-readable ``code`` and the HTTP status the
API layer answers with, so transport code never has to guess from message text.
"""


class CrowdQAError(Exception):
    code = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CrowdQAError):
    """Malformed input: bad duration, malformed session code, oversized note."""

    code = "validation_error"
    status_code = 422


class NotFoundError(CrowdQAError):
    """Unknown session, session code or attendee."""

    code = "not_found"
    status_code = 404


class InvalidStateError(CrowdQAError):
    """Operation is illegal for the session's current lifecycle state."""

    code = "session_not_active"
    status_code = 409


class SessionNotJoinableError(InvalidStateError):
    code = "session_not_joinable"
    status_code = 410


class CodeUnavailableError(CrowdQAError):
    code = "code_unavailable"
    status_code = 503
