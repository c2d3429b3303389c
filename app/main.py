import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.api.v1.class_subjects.router import router as class_subjects_router
from app.api.v1.classes.classes_router import router as classes_router
from app.api.v1.lesson_periods.router import router as lesson_periods_router
from app.api.v1.rooms.router import router as rooms_router
from app.api.v1.subjects.router import router as subjects_router
from app.api.v1.terms.router import router as terms_router
from app.api.v1.timetable_settings.router import router as timetable_settings_router
from app.api.v1.timetables.router import router as timetables_router
from app.api.v1.trainer_assignments.router import router as trainer_assignments_router
from app.core.config import settings
from app.core.exceptions import ServiceError, ValidationError

logger = logging.getLogger(__name__)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.kind, "context": exc.context},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Unparseable path/query values and malformed bodies are input errors like any other.
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Invalid request parameters",
            "error": ValidationError.kind,
            "context": {"errors": jsonable_encoder(exc.errors())},
        },
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Unhandled storage error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error": "internal_error"},
    )


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Timetable Scheduling Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)

    # Routers
    app.include_router(terms_router)
    app.include_router(classes_router)
    app.include_router(subjects_router)
    app.include_router(rooms_router)
    app.include_router(lesson_periods_router)
    app.include_router(class_subjects_router)
    app.include_router(trainer_assignments_router)
    app.include_router(timetables_router)
    app.include_router(timetable_settings_router)

    return app


app = create_app()
