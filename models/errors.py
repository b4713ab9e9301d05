"""
Error taxonomy shared by the pipeline, the action lifecycle and the API.

Each error carries a `kind` so stage results and HTTP responses can be
derived from it without string matching.
"""


class ChiefError(Exception):
    kind = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(ChiefError):
    """Missing or malformed request fields. Nothing was mutated."""
    kind = "validation"


class PreconditionFailed(ChiefError):
    """Stale state transition, e.g. confirming an already-cancelled Action"""
    kind = "conflict"

    def __init__(self, message: str, current_status: str = None):
        super().__init__(message)
        self.current_status = current_status


class ActionNotFound(PreconditionFailed):
    """Action (or suggestion) does not exist or belongs to another user"""
    kind = "authorization"


class SenderError(ChiefError):
    """An external collaborator (Gmail, Slack, Calendar) rejected or failed a call"""
    kind = "transient"

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class IntegrationNotFound(SenderError):
    """The user has no active integration for the requested provider"""
    kind = "authorization"
