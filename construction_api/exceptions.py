"""
Кастомные исключения для приложения.
"""
from typing import Optional, Dict, Any


class ConsultationError(Exception):
    """Базовое исключение приложения"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(ConsultationError):
    """Сущность не найдена"""
    pass


class ConsultationNotFoundError(NotFoundError):
    """Консультация не найдена"""
    def __init__(self, consultation_id: Any):
        super().__init__("Consultation not found", {"consultation_id": str(consultation_id)})


class UserNotFoundError(NotFoundError):
    """Пользователь не найден"""
    def __init__(self, user_id: Any):
        super().__init__("User not found", {"user_id": str(user_id)})


class ForbiddenError(ConsultationError):
    """Действие запрещено для текущего пользователя"""
    pass


class InvalidStatusTransitionError(ConsultationError):
    """Недопустимый переход статуса консультации"""
    def __init__(self, current_status: str, requested_status: str):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Invalid status transition from {current_status} to {requested_status}",
            {"current_status": current_status, "requested_status": requested_status},
        )


class PersistenceError(ConsultationError):
    """Ошибка хранилища (БД недоступна, конфликт записи). Операцию можно повторить целиком."""
    pass


class ConcurrentStatusChangeError(PersistenceError):
    """Статус изменен параллельным запросом между чтением и записью"""
    def __init__(self, consultation_id: Any, expected_status: str, requested_status: str):
        super().__init__(
            "Consultation status was changed by another request, reload and retry",
            {
                "consultation_id": str(consultation_id),
                "expected_status": expected_status,
                "requested_status": requested_status,
            },
        )


class ValidationError(ConsultationError):
    """Ошибка валидации данных"""
    pass


class AuthenticationError(ConsultationError):
    """Ошибка аутентификации (нет токена, неверный токен, неверный пароль)"""
    pass


class UserBlockedError(ForbiddenError):
    """Учетная запись заблокирована"""
    pass

