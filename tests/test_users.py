import asyncio
from datetime import timedelta

import pytest

from construction_api.enums import UserRole
from construction_api.exceptions import (
    AuthenticationError,
    ForbiddenError,
    UserBlockedError,
    ValidationError,
)
from construction_api.models import utcnow
from construction_api.scheduler import lift_expired_blocks_job
from construction_api.services.user_service import UserService


def _run(session_factory, func):
    async def _inner():
        async with session_factory() as session:
            return await func(UserService(session))

    return asyncio.run(_inner())


def test_register_normalises_email_and_hashes_password(session_factory) -> None:
    user = _run(session_factory, lambda service: service.register("Bob Builder", " Bob@Example.com ", "hammer1"))

    assert user.email == "bob@example.com"
    assert user.password_hash != "hammer1"
    assert user.role == "user"


def test_register_duplicate_email(session_factory) -> None:
    _run(session_factory, lambda service: service.register("Bob Builder", "bob@example.com", "hammer1"))

    with pytest.raises(ValidationError):
        _run(session_factory, lambda service: service.register("Bob Again", "BOB@example.com", "hammer2"))


def test_authenticate(session_factory, owner) -> None:
    email = _run(session_factory, lambda service: service.get(owner.id)).email

    user = _run(session_factory, lambda service: service.authenticate(email, "secret1"))
    assert user.id == owner.id

    with pytest.raises(AuthenticationError):
        _run(session_factory, lambda service: service.authenticate(email, "wrong1"))
    with pytest.raises(AuthenticationError):
        _run(session_factory, lambda service: service.authenticate("nobody@example.com", "secret1"))


def test_block_and_unblock_keep_history(session_factory, owner, admin) -> None:
    email = _run(session_factory, lambda service: service.get(owner.id)).email
    blocked = _run(session_factory, lambda service: service.block(owner.id, admin.id, "Spam requests", duration_hours=2))
    assert blocked.is_currently_blocked()
    assert blocked.block_reason == "Spam requests"

    with pytest.raises(UserBlockedError) as exc_info:
        _run(session_factory, lambda service: service.authenticate(email, "secret1"))
    assert exc_info.value.details["block_info"]["reason"] == "Spam requests"

    with pytest.raises(ValidationError):
        _run(session_factory, lambda service: service.block(owner.id, admin.id, "Again"))

    unblocked = _run(session_factory, lambda service: service.unblock(owner.id))
    assert not unblocked.is_blocked
    assert unblocked.block_reason is None

    history = _run(session_factory, lambda service: service.block_history(owner.id))
    assert len(history) == 1
    assert history[0].blocked_by == admin.id
    assert history[0].expires_at is not None
    assert history[0].unblocked_at is not None


def test_block_requires_reason_and_spares_admins(session_factory, owner, admin, make_user) -> None:
    other_admin = make_user(UserRole.ADMIN)

    with pytest.raises(ValidationError):
        _run(session_factory, lambda service: service.block(owner.id, admin.id, "   "))
    with pytest.raises(ForbiddenError):
        _run(session_factory, lambda service: service.block(other_admin.id, admin.id, "No reason"))


def test_unblock_not_blocked_user(session_factory, owner) -> None:
    with pytest.raises(ValidationError):
        _run(session_factory, lambda service: service.unblock(owner.id))


def test_permanent_block_never_expires(session_factory, owner, admin) -> None:
    blocked = _run(session_factory, lambda service: service.block(owner.id, admin.id, "Abuse"))

    assert blocked.block_expires_at is None
    assert blocked.is_currently_blocked(now=utcnow() + timedelta(days=3650))


def test_expired_block_is_lifted(session_factory, owner, admin) -> None:
    _run(session_factory, lambda service: service.block(owner.id, admin.id, "Cool down", duration_hours=1))

    # Через два часа блокировка уже не действует, но флаг в БД еще стоит
    later = utcnow() + timedelta(hours=2)
    user = _run(session_factory, lambda service: service.get(owner.id))
    assert user.is_blocked
    assert not user.is_currently_blocked(now=later)

    lifted = _run(session_factory, lambda service: service.lift_expired_blocks(now=later))
    assert lifted == 1

    user = _run(session_factory, lambda service: service.get(owner.id))
    assert not user.is_blocked
    history = _run(session_factory, lambda service: service.block_history(owner.id))
    assert history[-1].unblocked_at is not None


def test_scheduler_job_skips_active_blocks(session_factory, owner, admin) -> None:
    _run(session_factory, lambda service: service.block(owner.id, admin.id, "Active", duration_hours=5))

    assert asyncio.run(lift_expired_blocks_job(session_factory)) == 0

    user = _run(session_factory, lambda service: service.get(owner.id))
    assert user.is_currently_blocked()


def test_cannot_demote_last_admin(session_factory, admin, make_user) -> None:
    with pytest.raises(ValidationError):
        _run(session_factory, lambda service: service.set_role(admin.id, UserRole.USER))

    second = make_user(UserRole.ADMIN)
    demoted = _run(session_factory, lambda service: service.set_role(second.id, UserRole.USER))
    assert demoted.role == "user"


def test_change_password(session_factory, owner) -> None:
    user = _run(session_factory, lambda service: service.get(owner.id))

    async def _change():
        async with session_factory() as session:
            service = UserService(session)
            current = await service.get(owner.id)
            with pytest.raises(AuthenticationError):
                await service.change_password(current, "wrong1", "newpass1")
            await service.change_password(current, "secret1", "newpass1")

    asyncio.run(_change())

    assert _run(session_factory, lambda service: service.authenticate(user.email, "newpass1")).id == owner.id
