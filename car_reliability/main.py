import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

# ✅ Import All API Routes
from car_reliability.api.routes import (
    account,
    auth,
    billing,
    billing_webhook,
    entitlement,
    health,
    history,
    reliability,
    saved_vehicles,
)
from car_reliability.core.config import APP_NAME, APP_VERSION, CORS_ORIGINS, RUN_MIGRATIONS
from car_reliability.core.exceptions import AppError, DatabaseUnavailableError
from car_reliability.core.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if RUN_MIGRATIONS:
        from car_reliability.db.migrate import run_migrations
        run_migrations()
    else:
        from car_reliability.db.init_db import init_db
        init_db()
    logger.info(f"{APP_NAME} {APP_VERSION} started")
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)

# ✅ CORS LOCKDOWN: ONLY CONFIGURED FRONTENDS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ ERROR HANDLERS
# ============================================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"), "message": error.get("msg")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "validation_error", "detail": "Invalid request", "details": errors},
    )


@app.exception_handler(OperationalError)
async def database_error_handler(request: Request, exc: OperationalError):
    logger.error(f"Database unavailable during {request.method} {request.url.path}: {exc}")
    error = DatabaseUnavailableError("Database unavailable")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(auth.router)
app.include_router(account.router)
app.include_router(entitlement.router)
app.include_router(billing.router)
app.include_router(billing_webhook.router)
app.include_router(reliability.router)
app.include_router(history.router)
app.include_router(saved_vehicles.router)
app.include_router(health.router)


# ============================================
# ✅ ROOT ENDPOINT
# ============================================

@app.get("/")
def root():
    return {"status": f"{APP_NAME} running", "version": APP_VERSION}
