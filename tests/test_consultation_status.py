import itertools

import pytest

from construction_api.enums import ConsultationStatus
from construction_api.services.consultation_status import allowed_transitions, can_transition

STATUSES = [status.value for status in ConsultationStatus]

LEGAL = {
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "completed"),
    ("confirmed", "cancelled"),
    ("completed", "cancelled"),
}


@pytest.mark.parametrize("current,requested", list(itertools.product(STATUSES, STATUSES)))
def test_transition_table_matches_allowed_pairs(current, requested) -> None:
    assert can_transition(current, requested) is ((current, requested) in LEGAL)


def test_cancelled_is_terminal() -> None:
    assert allowed_transitions("cancelled") == frozenset()


def test_self_transitions_are_rejected() -> None:
    for status in STATUSES:
        assert not can_transition(status, status)


def test_accepts_enum_members() -> None:
    assert can_transition(ConsultationStatus.PENDING, ConsultationStatus.CONFIRMED)
    assert not can_transition(ConsultationStatus.PENDING, ConsultationStatus.COMPLETED)


def test_unknown_statuses_have_no_transitions() -> None:
    assert allowed_transitions("urgent") == frozenset()
    assert not can_transition("urgent", "confirmed")
    assert not can_transition("pending", "urgent")
    assert not can_transition(None, "confirmed")
