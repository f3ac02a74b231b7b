"""Exceptions raised by the versioning engine and the graph stores."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from callflow.models.flow import FlowValidationResult


class VersioningError(Exception):
    """Base exception for call-flow versioning errors.

    Recoverable errors are reported back to the caller as client errors;
    non-recoverable ones abort the request after a full rollback.
    """

    recoverable: bool = True

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class NotFoundError(VersioningError):
    """ChangeSet, flow, segment or transition does not exist."""

    pass


class InvalidStateTransition(VersioningError):
    """Requested operation is illegal for the ChangeSet's current status."""

    def __init__(self, current: str, target: str, message: str | None = None):
        super().__init__(
            message or f"Invalid state transition from '{current}' to '{target}'",
            current=current,
            target=target,
        )
        self.current = current
        self.target = target


class ConflictError(VersioningError):
    """A uniqueness rule of the graph would be violated."""

    pass


class MissingOwnership(VersioningError):
    """Flow has no resolvable owning customer/project."""

    pass


class FlowValidationError(VersioningError):
    """Structural validation of a flow graph reported errors."""

    def __init__(self, message: str, result: FlowValidationResult):
        super().__init__(message)
        self.result = result


class IntegrityViolation(VersioningError):
    """A graph reference cannot be resolved within its scope.

    Unreachable while the scope invariants hold; treated as fatal.
    """

    recoverable = False
