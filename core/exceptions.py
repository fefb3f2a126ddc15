"""
Service-layer exception hierarchy.

Services raise these; `app.py` registers one handler per type so routes never have to
translate them by hand.

    NotFoundError   -> 404
    WorkflowError   -> 422  (business rule violated: transfer gate, status change, ...)
    ConflictError   -> 409
    BadRequestError -> 400
    PermissionDenied -> 403
"""

from typing import Any, Dict, List, Optional


class NotFoundError(Exception):
    def __init__(self, resource: str, resource_id: Optional[Any] = None, message: Optional[str] = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        if message is None:
            message = f"{resource} not found"
        super().__init__(message)


class ConflictError(Exception):
    pass


class WorkflowError(Exception):
    """Raised when a request is well-formed but breaks a workflow rule."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.details = details or {}
        super().__init__(message)


class TransferNotAllowed(WorkflowError):
    pass


class TransferBlocked(WorkflowError):
    """The current department still has pending or rejected checklist steps."""

    def __init__(self, pending_steps: List[str], rejected_steps: List[str]) -> None:
        self.pending_steps = pending_steps
        self.rejected_steps = rejected_steps
        parts = []
        if pending_steps:
            parts.append(f"pending steps: {', '.join(pending_steps)}")
        if rejected_steps:
            parts.append(f"rejected steps: {', '.join(rejected_steps)}")
        super().__init__(
            "Process cannot leave the department (" + "; ".join(parts) + ")",
            details={"pending_steps": pending_steps, "rejected_steps": rejected_steps},
        )


class ReturnNotAllowed(WorkflowError):
    pass


class InvalidStatusTransition(WorkflowError):
    def __init__(self, current: str, target: str, reason: Optional[str] = None) -> None:
        self.current = current
        self.target = target
        message = f"Cannot change status from '{current}' to '{target}'"
        if reason:
            message += f": {reason}"
        super().__init__(message, details={"current": current, "target": target})


class BadRequestError(Exception):
    """Request is missing a value or references an unknown record (400)."""


class PermissionDenied(Exception):
    """Authenticated user is not allowed to perform the action (403)."""
