"""Tests for the ChangeSet status state machine."""

import pytest

from callflow.errors import InvalidStateTransition
from callflow.models import ChangeSetStatus
from callflow.services.state_machine import (
    ALLOWED_TRANSITIONS,
    can_transition,
    ensure_transition,
    is_editable,
)

DRAFT = ChangeSetStatus.DRAFT
VALIDATED = ChangeSetStatus.VALIDATED
PUBLISHED = ChangeSetStatus.PUBLISHED
DISCARDED = ChangeSetStatus.DISCARDED
ARCHIVED = ChangeSetStatus.ARCHIVED


class TestTransitionTable:
    """Tests for legal and illegal status changes."""

    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(ChangeSetStatus)

    @pytest.mark.parametrize(
        "current,target",
        [
            (DRAFT, VALIDATED),
            (DRAFT, PUBLISHED),
            (DRAFT, DISCARDED),
            (VALIDATED, PUBLISHED),
            (VALIDATED, DISCARDED),
        ],
    )
    def test_legal(self, current, target):
        assert can_transition(current, target)
        ensure_transition(current, target)

    @pytest.mark.parametrize("current", [PUBLISHED, DISCARDED, ARCHIVED])
    @pytest.mark.parametrize("target", list(ChangeSetStatus))
    def test_final_statuses_are_frozen(self, current, target):
        with pytest.raises(InvalidStateTransition) as exc_info:
            ensure_transition(current, target)

        assert exc_info.value.current == current.value
        assert exc_info.value.target == target.value

    def test_validated_cannot_go_back_to_draft(self):
        assert not can_transition(VALIDATED, DRAFT)

    def test_nothing_moves_to_archived(self):
        """Archived records are created directly in that status."""
        assert not any(ARCHIVED in targets for targets in ALLOWED_TRANSITIONS.values())


class TestEditable:
    """Tests for which scopes accept edits."""

    def test_editable(self):
        assert is_editable(DRAFT)
        assert is_editable(VALIDATED)

    @pytest.mark.parametrize("status", [PUBLISHED, DISCARDED, ARCHIVED])
    def test_read_only(self, status):
        assert not is_editable(status)
