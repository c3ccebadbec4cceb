from enum import Enum
from typing import Union


class InquiryStatus(str, Enum):
    NEW = "new"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


VALID_TRANSITIONS = {
    InquiryStatus.NEW: [InquiryStatus.ASSIGNED, InquiryStatus.IN_PROGRESS, InquiryStatus.RESOLVED],
    InquiryStatus.ASSIGNED: [InquiryStatus.IN_PROGRESS, InquiryStatus.RESOLVED],
    InquiryStatus.IN_PROGRESS: [InquiryStatus.RESOLVED],
    InquiryStatus.RESOLVED: [],
}

# Acceptance goes through the accept action, resolution through the closed
# conversation webhook. Neither is reachable from here.
MANUAL_TRANSITIONS = {
    InquiryStatus.NEW: [InquiryStatus.ASSIGNED],
}

ACCEPTED_STATUSES = (InquiryStatus.IN_PROGRESS, InquiryStatus.RESOLVED)
ENGAGEABLE_STATUSES = (InquiryStatus.NEW, InquiryStatus.ASSIGNED)


class InvalidTransitionError(Exception):
    def __init__(self, from_state: InquiryStatus, to_state: InquiryStatus):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def can_transition(from_state: InquiryStatus, to_state: InquiryStatus) -> bool:
    """Check if transition is valid."""
    allowed = VALID_TRANSITIONS.get(from_state, [])
    return to_state in allowed


def can_set_manually(from_state: InquiryStatus, to_state: InquiryStatus) -> bool:
    """Whether a dashboard user may make this move by hand."""
    return can_transition(from_state, to_state) and to_state in MANUAL_TRANSITIONS.get(from_state, [])


def sources_for(to_state: InquiryStatus) -> list[InquiryStatus]:
    """All statuses that may move to `to_state`; used to build conditional updates."""
    return [source for source, targets in VALID_TRANSITIONS.items() if to_state in targets]


def is_accepted(status: Union[InquiryStatus, str, None]) -> bool:
    """Acceptance is derived from status, never stored."""
    if status is None:
        return False
    try:
        return InquiryStatus(status) in ACCEPTED_STATUSES
    except ValueError:
        return False
