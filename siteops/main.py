from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from siteops.api.routes_attendance import router as attendance_router
from siteops.api.routes_auth import router as auth_router
from siteops.api.routes_employees import router as employees_router
from siteops.api.routes_materials import router as materials_router
from siteops.api.routes_projects import router as projects_router
from siteops.api.routes_reports import router as reports_router
from siteops.api.routes_users import router as users_router
from siteops.core.config import get_settings
from siteops.core.errors import AuthenticationError, SiteOpsError
from siteops.core.logging import configure_logging
from siteops.persistence.pg import init_db

configure_logging()
logger = logging.getLogger(__name__)
settings = get_settings()

app = FastAPI(title=settings.app_name)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    logger.info("database ready: env=%s", settings.env)


@app.exception_handler(SiteOpsError)
async def siteops_error_handler(_: Request, exc: SiteOpsError):
    if exc.http_status >= 500:
        logger.error("request failed: %s", exc.detail, exc_info=exc)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.error_code, "detail": exc.detail},
        headers=headers,
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(_: Request, exc: SQLAlchemyError):
    logger.error("database error: %s", exc.__class__.__name__, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "persistence_error", "detail": "database operation failed"},
    )


@app.get("/")
def root() -> dict:
    return {"message": "Project Management API is running!"}


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(projects_router)
app.include_router(materials_router)
app.include_router(employees_router)
app.include_router(attendance_router)
app.include_router(reports_router)
