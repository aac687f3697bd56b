"""Allowed refund request status transitions."""

from src.core.errors import InvalidStateTransitionError
from src.domain.refund import RefundRequestStatus


# awaiting_review -> approved -> completed, with rejected terminal from awaiting_review
_TRANSITIONS: dict[RefundRequestStatus, frozenset[RefundRequestStatus]] = {
    RefundRequestStatus.AWAITING_REVIEW: frozenset({RefundRequestStatus.APPROVED, RefundRequestStatus.REJECTED}),
    RefundRequestStatus.APPROVED: frozenset({RefundRequestStatus.COMPLETED}),
    RefundRequestStatus.COMPLETED: frozenset(),
    RefundRequestStatus.REJECTED: frozenset(),
}


def can_transition(current: RefundRequestStatus | str, target: RefundRequestStatus | str) -> bool:
    """Return True if ``current`` may move to ``target``."""
    return RefundRequestStatus(target) in _TRANSITIONS[RefundRequestStatus(current)]


def ensure_transition(*, request_id: str, current: RefundRequestStatus | str, target: RefundRequestStatus | str) -> None:
    """Raise InvalidStateTransitionError unless the transition is allowed."""
    if not can_transition(current, target):
        msg = f"Cannot move refund request {request_id} from {current} to {target}"
        raise InvalidStateTransitionError(msg)


def is_terminal(status: RefundRequestStatus | str) -> bool:
    """Completed and rejected requests never change again."""
    return not _TRANSITIONS[RefundRequestStatus(status)]
