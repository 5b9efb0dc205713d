# event_approval/services/workflow_errors.py

"""
Typed rejections raised by the workflow engine and the request store.

Each error carries the HTTP status the API layer answers with. None of them
is retried internally; the caller may correct the input and try again.
"""


class WorkflowError(Exception):
    status_code: int = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class RequestNotFound(WorkflowError):
    status_code = 404


class Unauthorized(WorkflowError):
    """Acting role is not the one currently due, or staff is not the owner."""
    status_code = 403


class AlreadyCompleted(WorkflowError):
    status_code = 409


class CommentsRequired(WorkflowError):
    status_code = 400


class InvalidReferenceFormat(WorkflowError):
    status_code = 400


class DuplicateReference(WorkflowError):
    status_code = 409


class InvalidWorkflowSelection(WorkflowError):
    status_code = 400


class NotInRecreationState(WorkflowError):
    status_code = 409


class StaleState(WorkflowError):
    """A concurrent write changed the request between read and write."""
    status_code = 409


class StoreUnavailable(WorkflowError):
    status_code = 503


class SimilarEventExists(WorkflowError):
    status_code = 409


class LetterNotAvailable(WorkflowError):
    status_code = 409


class InvalidReport(WorkflowError):
    status_code = 400
