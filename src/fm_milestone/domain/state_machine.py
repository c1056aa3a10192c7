"""Milestone state machine.

    PENDING ──► IN_PROGRESS ──► SUBMITTED ──► APPROVED
       │                           ▲  │
       └───────────────────────────┘  └──► REJECTED ──► IN_PROGRESS

APPROVED is terminal: it is the status a milestone holds once its escrow share
has been released.
"""

from src.fm_common.enums import MilestoneStatus
from src.fm_common.errors import InvalidStateTransitionError

_S = MilestoneStatus

TRANSITIONS: dict[str, frozenset[str]] = {
    _S.PENDING.value: frozenset({_S.IN_PROGRESS.value, _S.SUBMITTED.value}),
    _S.IN_PROGRESS.value: frozenset({_S.SUBMITTED.value}),
    _S.SUBMITTED.value: frozenset({_S.APPROVED.value, _S.REJECTED.value}),
    _S.REJECTED.value: frozenset({_S.IN_PROGRESS.value}),
    _S.APPROVED.value: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def sources_of(target: str) -> tuple[str, ...]:
    """Every status a milestone may move to `target` from, in a stable order."""
    return tuple(sorted(s for s, targets in TRANSITIONS.items() if target in targets))


def ensure_transition(milestone_id: str, current: str, target: str, action: str) -> None:
    if not can_transition(current, target):
        raise InvalidStateTransitionError("milestone", milestone_id, current, action)
