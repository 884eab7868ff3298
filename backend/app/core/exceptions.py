"""Error taxonomy shared by the service layer and the API.

Services raise these; ``app.main`` maps them to HTTP responses using
``status_code``. Nothing here knows about FastAPI.
"""


class ApprovalServiceError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(ApprovalServiceError):
    """Expense, flow, step, rule or user is absent or not visible to the caller."""

    status_code = 404


class ForbiddenError(ApprovalServiceError):
    """Actor has no pending step, or lacks the role for the action."""

    status_code = 403


class InvalidInputError(ApprovalServiceError, ValueError):
    status_code = 400


class ConflictError(ApprovalServiceError):
    """Flow already exists / already completed, or rule still referenced."""

    status_code = 409


class DependencyFailureError(ApprovalServiceError):
    """An external collaborator (e.g. exchange-rate provider) failed."""

    status_code = 502
