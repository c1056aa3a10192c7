"""Tests for the milestone state machine and domain model."""

import pytest

from src.fm_common.enums import MilestoneStatus
from src.fm_common.errors import InvalidStateTransitionError
from src.fm_milestone.domain.models import Deliverable, Milestone
from src.fm_milestone.domain.state_machine import (
    TRANSITIONS,
    can_transition,
    ensure_transition,
    sources_of,
)

_S = MilestoneStatus


def _milestone(status: str) -> Milestone:
    return Milestone(
        id="1001", contract_id="c-1", title="Logo", description="", amount=5000,
        currency="USD", sort_order=1, status=status,
    )


class TestTransitions:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (_S.PENDING, _S.IN_PROGRESS),
            (_S.PENDING, _S.SUBMITTED),
            (_S.IN_PROGRESS, _S.SUBMITTED),
            (_S.SUBMITTED, _S.APPROVED),
            (_S.SUBMITTED, _S.REJECTED),
            (_S.REJECTED, _S.IN_PROGRESS),
        ],
    )
    def test_allowed(self, current: MilestoneStatus, target: MilestoneStatus) -> None:
        assert can_transition(current.value, target.value)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (_S.PENDING, _S.APPROVED),
            (_S.IN_PROGRESS, _S.APPROVED),
            (_S.REJECTED, _S.APPROVED),
            (_S.REJECTED, _S.SUBMITTED),
            (_S.SUBMITTED, _S.IN_PROGRESS),
        ],
    )
    def test_forbidden(self, current: MilestoneStatus, target: MilestoneStatus) -> None:
        assert not can_transition(current.value, target.value)

    def test_approved_is_terminal(self) -> None:
        assert TRANSITIONS[_S.APPROVED.value] == frozenset()
        assert all(not can_transition(_S.APPROVED.value, s.value) for s in _S)

    def test_unknown_status(self) -> None:
        assert not can_transition("PAID", _S.APPROVED.value)

    def test_sources_of(self) -> None:
        assert sources_of(_S.APPROVED.value) == (_S.SUBMITTED.value,)
        assert sources_of(_S.SUBMITTED.value) == (_S.IN_PROGRESS.value, _S.PENDING.value)
        assert sources_of(_S.IN_PROGRESS.value) == (_S.PENDING.value, _S.REJECTED.value)

    def test_ensure_transition_raises(self) -> None:
        with pytest.raises(InvalidStateTransitionError, match="Cannot approve milestone 1001"):
            ensure_transition("1001", _S.PENDING.value, _S.APPROVED.value, "approve")


class TestMilestoneModel:
    @pytest.mark.parametrize("status", ["PENDING", "IN_PROGRESS", "REJECTED"])
    def test_editable(self, status: str) -> None:
        assert _milestone(status).is_editable

    @pytest.mark.parametrize("status", ["SUBMITTED", "APPROVED"])
    def test_locked(self, status: str) -> None:
        assert not _milestone(status).is_editable

    def test_amount_locked_once_started(self) -> None:
        assert not _milestone("PENDING").is_amount_locked
        assert _milestone("IN_PROGRESS").is_amount_locked

    def test_deliverable_to_dict(self) -> None:
        d = Deliverable(filename="a.zip", url="https://x/a.zip", size=10, type="application/zip")
        assert d.to_dict() == {
            "filename": "a.zip", "url": "https://x/a.zip", "size": 10, "type": "application/zip",
        }
