"""
Главный файл FastAPI приложения.

API сайта строительной компании:
- учетные записи (регистрация, вход, блокировки)
- заявки на консультацию и журнал смены статусов
- отзывы клиентов, статьи блога и курсы с оценками
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from .config import settings
from .init_db import init_db, check_db_connection
from .routers import auth, blog, consultations, courses, health, testimonials, users
from .scheduler import setup_scheduler, start_scheduler, shutdown_scheduler
from .utils.structured_logging import configure_logging
from .exceptions import (
    ConsultationError,
    NotFoundError,
    ForbiddenError,
    InvalidStatusTransitionError,
    PersistenceError,
    ConcurrentStatusChangeError,
    ValidationError,
    AuthenticationError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle events для приложения.

    При старте:
    - Настраивает логирование
    - Проверяет подключение к БД и создает таблицы
    - Запускает планировщик (если ENABLE_SCHEDULER)

    При остановке:
    - Останавливает планировщик
    """
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    print(f"🚀 Запуск приложения ({settings.ENV})...")

    if await check_db_connection():
        await init_db()
    else:
        print("⚠️  Предупреждение: не удалось подключиться к БД")

    # Если ENABLE_SCHEDULER=false, планировщик запускается отдельным процессом (run_scheduler.py)
    if settings.ENABLE_SCHEDULER:
        try:
            setup_scheduler()
            start_scheduler()
            print("✓ Планировщик задач запущен")
        except Exception as e:
            logger.error(f"Ошибка запуска планировщика: {e}", exc_info=True)
            print(f"⚠️  Предупреждение: не удалось запустить планировщик задач: {e}")
    else:
        print("ℹ️  Планировщик задач отключен в этом процессе")

    yield

    print("🛑 Остановка приложения...")
    shutdown_scheduler()


app = FastAPI(
    title="Construction Company API",
    description="""
    API сайта строительной компании.

    ## Аутентификация
    Запросы требуют заголовок `Authorization: Bearer <access_token>`,
    токены выдаются `POST /api/auth/login` и `POST /api/auth/register`.

    ## Консультации
    Статусы: pending -> confirmed -> completed, отмена (cancelled) из любого
    статуса кроме cancelled. Статус меняет только администратор через
    `PATCH /api/consultations/{id}/status`, каждая смена пишется в журнал.

    ## Контент
    Отзывы (`/api/testimonials`) показываются после одобрения администратором.
    Статьи (`/api/blogs`) и курсы (`/api/courses`) принимают оценки 1-5,
    средняя оценка пересчитывается после каждого добавления и удаления.
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    redirect_slashes=False
)

# CORS middleware
# Парсим ALLOWED_ORIGINS из env (через запятую) или используем "*" если не указано
allowed_origins = settings.ALLOWED_ORIGINS.split(",") if settings.ALLOWED_ORIGINS != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, exc: ConsultationError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "details": exc.details},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Обработчик ошибок валидации Pydantic"""
    errors = []
    for error in exc.errors():
        error_dict = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
        }
        # ctx может содержать исключение ValueError из валидатора
        if "ctx" in error:
            ctx = error["ctx"].copy()
            if "error" in ctx and isinstance(ctx["error"], Exception):
                ctx["error"] = str(ctx["error"])
            error_dict["ctx"] = ctx
        errors.append(error_dict)

    logger.warning(f"Validation error on {request.url.path}: {errors}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    """Обработчик ошибки - сущность не найдена"""
    logger.warning(f"Not found: {exc.message} {exc.details}")
    return _error_response(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    """Обработчик ошибок аутентификации"""
    logger.info(f"Authentication failed on {request.url.path}: {exc.message}")
    response = _error_response(status.HTTP_401_UNAUTHORIZED, exc)
    response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(ForbiddenError)
async def forbidden_handler(request: Request, exc: ForbiddenError):
    """Обработчик ошибки - действие запрещено (в т.ч. заблокированный пользователь)"""
    logger.warning(f"Forbidden on {request.url.path}: {exc.message}")
    return _error_response(status.HTTP_403_FORBIDDEN, exc)


@app.exception_handler(InvalidStatusTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidStatusTransitionError):
    """Обработчик ошибки - недопустимый переход статуса"""
    logger.warning(f"Rejected status transition: {exc.message}")
    return _error_response(status.HTTP_400_BAD_REQUEST, exc)


@app.exception_handler(ConcurrentStatusChangeError)
async def concurrent_change_handler(request: Request, exc: ConcurrentStatusChangeError):
    """Обработчик конфликта записи - статус изменен параллельным запросом"""
    logger.warning(f"Write conflict: {exc.message} {exc.details}")
    return _error_response(status.HTTP_409_CONFLICT, exc)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    """Обработчик ошибок хранилища"""
    logger.error(f"Persistence error: {exc.message}")
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Обработчик ошибок валидации бизнес-логики"""
    logger.warning(f"Validation error: {exc.message}")
    return _error_response(status.HTTP_400_BAD_REQUEST, exc)


@app.exception_handler(ConsultationError)
async def consultation_error_handler(request: Request, exc: ConsultationError):
    """Обработчик прочих ошибок приложения"""
    logger.error(f"Application error: {exc.message}", exc_info=True)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Глобальный обработчик исключений"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Подключаем роуты
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(consultations.router, prefix="/api/consultations", tags=["consultations"])
app.include_router(testimonials.router, prefix="/api/testimonials", tags=["testimonials"])
app.include_router(blog.router, prefix="/api/blogs", tags=["blog"])
app.include_router(courses.router, prefix="/api/courses", tags=["courses"])


@app.get("/")
async def root():
    """Корневой endpoint"""
    return {
        "service": "Construction Company API",
        "version": "1.0.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("construction_api.main:app", host=settings.APP_HOST, port=settings.APP_PORT, reload=settings.DEBUG)
