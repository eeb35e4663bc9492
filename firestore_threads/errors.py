"""
Exceptions raised by the thread store.

Every public operation of :class:`~firestore_threads.service.ThreadTreeService`
raises either :class:`NotFound`, :class:`ValidationError` or one
operation-specific :class:`OperationError` subclass wrapping whatever went
wrong underneath.  Nothing is retried and nothing is rolled back: when a
multi-step mutation fails half way, the operation error says so through
``partial`` / ``completed_steps`` and chains a :class:`PartialFailure`.
"""

from typing import Optional, Sequence, Tuple


class ThreadTreeError(Exception):
    """Base class for every error raised by this package."""


class NotFound(ThreadTreeError, LookupError):
    """A referenced Thread, User or Community does not exist."""

    def __init__(self, kind: str, doc_id: Optional[str]):
        self.kind = kind
        self.doc_id = doc_id
        super().__init__(f"{kind} not found: {doc_id}")


class ValidationError(ThreadTreeError, ValueError):
    """Input rejected before anything was written."""


class StoreError(ThreadTreeError, RuntimeError):
    """The document store failed or was used incorrectly."""


class PartialFailure(StoreError):
    """A multi-step mutation failed after some of its steps committed."""

    def __init__(self, message: str, completed_steps: Sequence[str] = ()):
        self.completed_steps: Tuple[str, ...] = tuple(completed_steps)
        super().__init__(
            f"{message} (committed before failure: {', '.join(self.completed_steps)})"
        )


class OperationError(ThreadTreeError):
    """Failure of one public operation, carrying the original cause."""

    operation = "process thread"

    def __init__(
        self,
        cause: BaseException,
        completed_steps: Sequence[str] = (),
        operation: Optional[str] = None,
    ):
        if operation:
            self.operation = operation
        self.cause = cause
        self.completed_steps: Tuple[str, ...] = tuple(completed_steps)
        super().__init__(f"Failed to {self.operation}: {cause}")

    @property
    def partial(self) -> bool:
        return bool(self.completed_steps)


class FetchError(OperationError):
    operation = "fetch thread"


class CreateError(OperationError):
    operation = "create post"


class CommentError(OperationError):
    operation = "add comment"


class DeleteError(OperationError):
    operation = "delete thread"
