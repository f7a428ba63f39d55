import asyncio
import uuid

import pytest

from construction_api.exceptions import (
    ConcurrentStatusChangeError,
    ConsultationNotFoundError,
    ForbiddenError,
    InvalidStatusTransitionError,
    PersistenceError,
    ValidationError,
)
from construction_api.services.consultation_service import ConsultationService, StatusChange

from conftest import consultation_data


def _run(session_factory, func):
    """Выполняет func(service) в отдельной сессии"""
    async def _inner():
        async with session_factory() as session:
            return await func(ConsultationService(session))

    return asyncio.run(_inner())


def _state(session_factory, consultation_id):
    async def _load(service):
        consultation = await service.get(consultation_id)
        history = await service.get_history(consultation_id)
        return consultation.status, [(entry.status, entry.changed_by, entry.reason) for entry in history]

    return _run(session_factory, _load)


def test_create_starts_pending_with_empty_history(session_factory, owner, make_consultation) -> None:
    consultation_id = make_consultation(owner)

    status, history = _state(session_factory, consultation_id)
    assert status == "pending"
    assert history == []


def test_create_rejects_unknown_fields(session_factory, owner) -> None:
    with pytest.raises(ValidationError):
        _run(session_factory, lambda service: service.create(owner, consultation_data(status="completed")))


@pytest.mark.parametrize("path", [
    ["confirmed"],
    ["cancelled"],
    ["confirmed", "completed"],
    ["confirmed", "cancelled"],
    ["confirmed", "completed", "cancelled"],
])
def test_legal_transitions_append_one_entry_each(session_factory, owner, admin, make_consultation, path) -> None:
    consultation_id = make_consultation(owner)

    previous = "pending"
    for step, new_status in enumerate(path, start=1):
        change = _run(
            session_factory,
            lambda service: service.update_status(consultation_id, new_status, admin, reason=f"step {step}"),
        )
        assert isinstance(change, StatusChange)
        assert (change.old_status, change.new_status) == (previous, new_status)
        assert change.changed_by == admin.id

        status, history = _state(session_factory, consultation_id)
        assert status == new_status
        assert len(history) == step
        assert history[-1] == (new_status, admin.id, f"step {step}")
        previous = new_status


@pytest.mark.parametrize("path,rejected", [
    ([], "completed"),
    ([], "pending"),
    (["confirmed"], "pending"),
    (["confirmed"], "confirmed"),
    (["confirmed", "completed"], "pending"),
    (["confirmed", "completed"], "confirmed"),
    (["cancelled"], "pending"),
    (["cancelled"], "confirmed"),
    (["cancelled"], "completed"),
])
def test_illegal_transitions_change_nothing(session_factory, owner, admin, make_consultation, path, rejected) -> None:
    consultation_id = make_consultation(owner)
    for new_status in path:
        _run(session_factory, lambda service: service.update_status(consultation_id, new_status, admin))
    before = _state(session_factory, consultation_id)

    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        _run(session_factory, lambda service: service.update_status(consultation_id, rejected, admin))

    current = path[-1] if path else "pending"
    assert exc_info.value.current_status == current
    assert exc_info.value.requested_status == rejected
    assert _state(session_factory, consultation_id) == before


def test_confirm_then_complete_then_back_to_pending_is_rejected(session_factory, owner, admin, make_consultation) -> None:
    consultation_id = make_consultation(owner)
    _run(session_factory, lambda service: service.update_status(consultation_id, "confirmed", admin))
    _run(session_factory, lambda service: service.update_status(consultation_id, "completed", admin))

    with pytest.raises(InvalidStatusTransitionError):
        _run(session_factory, lambda service: service.update_status(consultation_id, "pending", admin))

    status, history = _state(session_factory, consultation_id)
    assert status == "completed"
    assert [entry[0] for entry in history] == ["confirmed", "completed"]


def test_blank_reason_is_stored_as_null(session_factory, owner, admin, make_consultation) -> None:
    consultation_id = make_consultation(owner)
    change = _run(session_factory, lambda service: service.update_status(consultation_id, "confirmed", admin, "   "))

    assert change.reason is None
    assert _state(session_factory, consultation_id)[1] == [("confirmed", admin.id, None)]


def test_update_status_unknown_consultation(session_factory, admin) -> None:
    with pytest.raises(ConsultationNotFoundError):
        _run(session_factory, lambda service: service.update_status(uuid.uuid4(), "confirmed", admin))


def test_stale_read_is_rejected_without_history(session_factory, owner, admin, make_consultation) -> None:
    consultation_id = make_consultation(owner)

    async def scenario():
        async with session_factory() as stale_session, session_factory() as other_session:
            stale_service = ConsultationService(stale_session)
            stale = await stale_service.get(consultation_id)
            assert stale.status == "pending"

            await ConsultationService(other_session).update_status(consultation_id, "confirmed", admin)

            # stale.status все еще pending, pending -> cancelled разрешен таблицей
            await stale_service.transition(stale, "cancelled", admin.id)

    with pytest.raises(ConcurrentStatusChangeError) as exc_info:
        asyncio.run(scenario())

    assert exc_info.value.details["expected_status"] == "pending"
    status, history = _state(session_factory, consultation_id)
    assert status == "confirmed"
    assert [entry[0] for entry in history] == ["confirmed"]


def test_racing_transitions_from_pending_yield_one_success(session_factory, owner, admin, make_consultation) -> None:
    consultation_id = make_consultation(owner)

    async def scenario():
        async with session_factory() as first, session_factory() as second:
            first_service = ConsultationService(first)
            second_service = ConsultationService(second)
            first_obj = await first_service.get(consultation_id)
            second_obj = await second_service.get(consultation_id)

            return await asyncio.gather(
                first_service.transition(first_obj, "confirmed", admin.id),
                second_service.transition(second_obj, "cancelled", admin.id),
                return_exceptions=True,
            )

    results = asyncio.run(scenario())

    successes = [result for result in results if isinstance(result, StatusChange)]
    failures = [result for result in results if isinstance(result, PersistenceError)]
    assert len(successes) == 1
    assert len(failures) == 1

    status, history = _state(session_factory, consultation_id)
    assert status == successes[0].new_status
    assert len(history) == 1


def test_owner_cannot_edit_confirmed_consultation(session_factory, owner, admin, make_consultation) -> None:
    consultation_id = make_consultation(owner)
    _run(session_factory, lambda service: service.update_status(consultation_id, "confirmed", admin))

    with pytest.raises(ForbiddenError):
        _run(session_factory, lambda service: service.update(consultation_id, owner, {"location": "Shelbyville"}))

    consultation = _run(session_factory, lambda service: service.get(consultation_id))
    assert consultation.location == "Springfield"


def test_owner_can_edit_pending_consultation(session_factory, owner, make_consultation) -> None:
    consultation_id = make_consultation(owner)

    consultation = _run(
        session_factory,
        lambda service: service.update(consultation_id, owner, {"location": "Shelbyville", "is_urgent": True}),
    )

    assert consultation.location == "Shelbyville"
    assert consultation.is_urgent is True
    assert consultation.status == "pending"


def test_update_rejects_status_field(session_factory, owner, make_consultation) -> None:
    consultation_id = make_consultation(owner)

    with pytest.raises(ValidationError):
        _run(session_factory, lambda service: service.update(consultation_id, owner, {"status": "completed"}))


def test_admin_can_edit_processed_consultation(session_factory, owner, admin, make_consultation) -> None:
    consultation_id = make_consultation(owner)
    _run(session_factory, lambda service: service.update_status(consultation_id, "confirmed", admin))

    consultation = _run(session_factory, lambda service: service.update(consultation_id, admin, {"location": "Capital City"}))

    assert consultation.location == "Capital City"
    assert consultation.status == "confirmed"


def test_other_user_cannot_read_or_edit(session_factory, owner, make_user, make_consultation) -> None:
    consultation_id = make_consultation(owner)
    stranger = make_user()

    with pytest.raises(ForbiddenError):
        _run(session_factory, lambda service: service.get_for_actor(consultation_id, stranger))
    with pytest.raises(ForbiddenError):
        _run(session_factory, lambda service: service.update(consultation_id, stranger, {"location": "Nowhere"}))
    with pytest.raises(ForbiddenError):
        _run(session_factory, lambda service: service.delete(consultation_id, stranger))


def test_delete_removes_consultation_and_history(session_factory, owner, admin, make_consultation) -> None:
    consultation_id = make_consultation(owner)
    _run(session_factory, lambda service: service.update_status(consultation_id, "confirmed", admin))

    with pytest.raises(ForbiddenError):
        _run(session_factory, lambda service: service.delete(consultation_id, owner))

    _run(session_factory, lambda service: service.delete(consultation_id, admin))

    with pytest.raises(ConsultationNotFoundError):
        _run(session_factory, lambda service: service.get(consultation_id))
    with pytest.raises(ConsultationNotFoundError):
        _run(session_factory, lambda service: service.get_history(consultation_id))


def test_owner_can_delete_pending_consultation(session_factory, owner, make_consultation) -> None:
    consultation_id = make_consultation(owner)

    _run(session_factory, lambda service: service.delete(consultation_id, owner))

    with pytest.raises(ConsultationNotFoundError):
        _run(session_factory, lambda service: service.get(consultation_id))
