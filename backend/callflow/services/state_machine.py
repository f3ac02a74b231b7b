"""ChangeSet status state machine.

The transition table is the single authority on which status changes are
legal. Every service consults it before mutating a ChangeSet's status.
"""

from callflow.errors import InvalidStateTransition
from callflow.models.changeset import ChangeSetStatus

ALLOWED_TRANSITIONS: dict[ChangeSetStatus, frozenset[ChangeSetStatus]] = {
    ChangeSetStatus.DRAFT: frozenset(
        {
            ChangeSetStatus.VALIDATED,
            ChangeSetStatus.PUBLISHED,
            ChangeSetStatus.DISCARDED,
        }
    ),
    ChangeSetStatus.VALIDATED: frozenset(
        {ChangeSetStatus.PUBLISHED, ChangeSetStatus.DISCARDED}
    ),
    ChangeSetStatus.PUBLISHED: frozenset(),
    ChangeSetStatus.DISCARDED: frozenset(),
    ChangeSetStatus.ARCHIVED: frozenset(),
}

# Statuses whose scope may still be edited
EDITABLE_STATUSES = frozenset({ChangeSetStatus.DRAFT, ChangeSetStatus.VALIDATED})


def can_transition(current: ChangeSetStatus, target: ChangeSetStatus) -> bool:
    """Whether moving from current to target is a legal status change."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: ChangeSetStatus, target: ChangeSetStatus) -> None:
    """Raise InvalidStateTransition unless current -> target is legal."""
    if not can_transition(current, target):
        raise InvalidStateTransition(current.value, target.value)


def is_editable(status: ChangeSetStatus) -> bool:
    return status in EDITABLE_STATUSES
