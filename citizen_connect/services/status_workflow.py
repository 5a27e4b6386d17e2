"""
Status Workflow Engine - service request state machine.

DESIGN PRINCIPLES:
- Only the transitions in ALLOWED_TRANSITIONS are accepted
- Reopen is allowed: completed -> in_progress, rejected -> pending
- Same-status updates are idempotent no-ops, not errors
- Invalid transitions are rejected before anything is written
"""

from typing import Dict, FrozenSet, List

from citizen_connect.core.errors import InvalidTransition, ValidationError
from citizen_connect.models.service_request import RequestStatus

# Legacy spellings accepted on input and mapped to the canonical status.
STATUS_ALIASES: Dict[str, RequestStatus] = {
    "resolved": RequestStatus.COMPLETED,
}


class StatusWorkflowEngine:
    """
    State machine for service request status transitions.

    pending      -> in_progress, completed, rejected
    in_progress  -> completed, pending
    completed    -> in_progress
    rejected     -> pending
    """

    # Allowed transitions map: {from_status: {to_status, ...}}
    ALLOWED_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
        RequestStatus.PENDING: frozenset({
            RequestStatus.IN_PROGRESS,
            RequestStatus.COMPLETED,
            RequestStatus.REJECTED,
        }),
        RequestStatus.IN_PROGRESS: frozenset({RequestStatus.COMPLETED, RequestStatus.PENDING}),
        RequestStatus.COMPLETED: frozenset({RequestStatus.IN_PROGRESS}),
        RequestStatus.REJECTED: frozenset({RequestStatus.PENDING}),
    }

    @classmethod
    def normalize_status(cls, value: str) -> RequestStatus:
        """
        Map client input onto the canonical enum.

        Raises:
            ValidationError: if the value is not a known status
        """
        key = (value or "").strip().lower()
        if key in STATUS_ALIASES:
            return STATUS_ALIASES[key]
        try:
            return RequestStatus(key)
        except ValueError:
            allowed = [status.value for status in RequestStatus]
            raise ValidationError(f"Invalid status '{value}'. Allowed values: {allowed}")

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check whether from_status -> to_status is in the transition table.
        A same-status pair is not a transition and returns False here;
        callers treat it as a no-op before asking.
        """
        try:
            from_enum = RequestStatus(from_status)
            to_enum = RequestStatus(to_status)
        except ValueError:
            return False
        return to_enum in cls.ALLOWED_TRANSITIONS.get(from_enum, frozenset())

    @classmethod
    def get_allowed_transitions(cls, current_status: str) -> List[str]:
        """
        Get list of allowed next statuses from current status, in enum order.
        """
        try:
            current_enum = RequestStatus(current_status)
        except ValueError:
            return []
        allowed = cls.ALLOWED_TRANSITIONS.get(current_enum, frozenset())
        return [status.value for status in RequestStatus if status in allowed]

    @classmethod
    def require_transition(cls, current_status: str, new_status: str) -> None:
        """
        Raises:
            InvalidTransition: if the pair is not in the table
        """
        if not cls.is_valid_transition(current_status, new_status):
            allowed = cls.get_allowed_transitions(current_status)
            raise InvalidTransition(
                f"Invalid status transition: {current_status} -> {new_status}. "
                f"Allowed transitions from {current_status}: {allowed}",
                current_status=current_status,
                allowed_transitions=allowed,
            )
