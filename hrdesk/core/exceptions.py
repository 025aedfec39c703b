"""
Workflow engine exception hierarchy.

Every error the engine surfaces is a recoverable, caller-facing condition.
Services raise these types; blueprints register handlers once (see
``hrdesk.utils.errors.register_workflow_error_handlers``) and get the same
HTTP status and machine-readable code everywhere.

Usage:
    from hrdesk.core.exceptions import InvalidTransition, NotFoundError

    raise NotFoundError(resource="ServiceRequest", resource_id=request_id)
    raise InvalidTransition("service_request", current="rejected", requested="approved_final")
"""


class WorkflowError(Exception):
    """Base class for all engine errors.

    Attributes:
        code: Machine-readable error code (``ERR_*``).
        http_status: Status used by the blueprint error handlers.
        details: Optional structured payload for API responses.
    """

    code = "ERR_WORKFLOW"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class NotFoundError(WorkflowError):
    """Raised when a requested item does not exist.

    Also raised when the actor may not see the item at all, so that a 403
    never confirms the existence of another unit's request.
    """

    code = "ERR_NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str, resource_id: str | int | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class InvalidTransition(WorkflowError):
    """Requested status change is not an edge of the item's state graph."""

    code = "ERR_INVALID_TRANSITION"
    http_status = 409

    def __init__(
        self,
        item_type: str,
        current: str,
        requested: str | None,
        reason: str | None = None,
    ) -> None:
        self.item_type = item_type
        self.current_status = current
        self.requested_status = requested
        msg = f"Cannot move {item_type} from '{current}' to '{requested}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, details={"current_status": current, "requested_status": requested})


class Unauthorized(WorkflowError):
    """Actor's role (or unit) is not permitted for the requested operation."""

    code = "ERR_FORBIDDEN"
    http_status = 403

    def __init__(self, actor_id: str, role: str, operation: str, reason: str | None = None) -> None:
        self.actor_id = actor_id
        self.role = role
        self.operation = operation
        msg = f"Actor {actor_id} ({role}) may not {operation}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, details={"role": role, "operation": operation})


class PreconditionFailed(WorkflowError):
    """Unit approval attempted while provided documents are not all verified.

    Args:
        outstanding: Slot descriptors ``{"slot_id", "name", "verification_status"}``.
    """

    code = "ERR_PRECONDITION_FAILED"
    http_status = 422

    def __init__(self, outstanding: list[dict]) -> None:
        self.outstanding = outstanding
        names = ", ".join(s["name"] for s in outstanding)
        msg = f"{len(outstanding)} document(s) not verified: {names}"
        super().__init__(msg, details={"outstanding_documents": outstanding})


class ConsultationClosed(WorkflowError):
    """Write attempted against a resolved or closed consultation."""

    code = "ERR_CONSULTATION_CLOSED"
    http_status = 409

    def __init__(self, consultation_id: str, status: str) -> None:
        self.consultation_id = consultation_id
        self.status = status
        super().__init__(
            f"Consultation {consultation_id} is {status}; no further changes allowed",
            details={"status": status},
        )


class StaleState(WorkflowError):
    """Optimistic-concurrency conflict. The caller must re-fetch and retry."""

    code = "ERR_STALE_STATE"
    http_status = 409

    def __init__(self, item_type: str, item_id: str, expected: int | None = None, actual: int | None = None) -> None:
        self.item_type = item_type
        self.item_id = item_id
        msg = f"{item_type} {item_id} was modified concurrently"
        if expected is not None and actual is not None:
            msg += f" (expected version {expected}, found {actual})"
        super().__init__(msg, details={"expected_version": expected, "current_version": actual})


class ValidationError(WorkflowError):
    """Input is well-formed but violates a business rule (e.g. a missing note).

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    code = "ERR_VALIDATION_REQUIRED"
    http_status = 400
