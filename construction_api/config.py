from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Настройки приложения из переменных окружения"""

    # Database
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "construction"
    DB_USER: str = "postgres"
    DB_PASS: str = "postgres"
    # Полный URL БД (перекрывает DB_*), например sqlite+aiosqlite:///./dev.db
    DATABASE_URL: Optional[str] = None

    # Database Connection Pool
    DB_POOL_SIZE: int = Field(default=20, description="Базовый размер пула соединений к БД")
    DB_MAX_OVERFLOW: int = Field(default=10, description="Максимальное количество дополнительных соединений при перегрузке")
    DB_POOL_TIMEOUT: int = Field(default=30, description="Таймаут ожидания свободного соединения из пула (секунды)")
    DB_POOL_RECYCLE: int = Field(default=3600, description="Время переиспользования соединений (секунды)")

    # Application
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 5000
    ENV: str = "dev"
    DEBUG: bool = False

    # CORS
    ALLOWED_ORIGINS: str = "*"  # Разрешенные источники через запятую, или "*" для всех

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = Field(default=False, description="Писать логи в JSON (StructuredFormatter)")

    # JWT
    JWT_SECRET: str = Field(default="change-me", description="Секрет для подписи access и refresh токенов")
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_EXPIRE_MINUTES: int = Field(default=60 * 24, description="Время жизни access токена (минуты)")
    JWT_REFRESH_EXPIRE_DAYS: int = Field(default=30, description="Время жизни refresh токена (дни)")

    # SMTP (пустой SMTP_HOST отключает отправку писем)
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_SSL: bool = False
    SMTP_STARTTLS: bool = True
    SMTP_TIMEOUT: int = 30
    SMTP_FROM_EMAIL: str = "no-reply@example.com"
    SMTP_FROM_NAME: str = "The Construction Company Team"
    CLIENT_URL: str = "http://localhost:3000"
    ADMIN_EMAIL: str = Field(default="", description="Адрес для уведомлений о новых заявках (пусто - не отправлять)")

    # Повторы отправки писем
    EMAIL_MAX_ATTEMPTS: int = Field(default=3, description="Количество попыток отправки письма")
    EMAIL_RETRY_DELAY: float = Field(default=1.0, description="Начальная задержка между попытками (секунды)")

    # Scheduler
    ENABLE_SCHEDULER: bool = True
    BLOCK_EXPIRY_INTERVAL_MINUTES: int = Field(default=5, description="Частота снятия истекших блокировок пользователей (минуты)")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def database_url(self) -> str:
        """URL БД для async engine (asyncpg по умолчанию)"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASS}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


@lru_cache()
def get_settings() -> Settings:
    """Получить настройки (кэшируется)"""
    return Settings()


settings = get_settings()
