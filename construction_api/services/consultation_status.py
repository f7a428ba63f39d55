"""Таблица допустимых переходов статуса консультации."""
from typing import Dict, FrozenSet, Optional

from ..enums import ConsultationStatus

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    ConsultationStatus.PENDING.value: frozenset({
        ConsultationStatus.CONFIRMED.value,
        ConsultationStatus.CANCELLED.value,
    }),
    ConsultationStatus.CONFIRMED.value: frozenset({
        ConsultationStatus.COMPLETED.value,
        ConsultationStatus.CANCELLED.value,
    }),
    # Завершенную консультацию можно только отменить
    ConsultationStatus.COMPLETED.value: frozenset({
        ConsultationStatus.CANCELLED.value,
    }),
    ConsultationStatus.CANCELLED.value: frozenset(),
}


def _value(status) -> Optional[str]:
    if isinstance(status, ConsultationStatus):
        return status.value
    return status


def allowed_transitions(current) -> FrozenSet[str]:
    """Статусы, достижимые за один шаг. Для неизвестного статуса пусто."""
    return ALLOWED_TRANSITIONS.get(_value(current), frozenset())


def can_transition(current, requested) -> bool:
    return _value(requested) in allowed_transitions(current)
