'''

'''
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from slowapi.errors import RateLimitExceeded

from .database.engine import create_db_engine_and_session_factory, dispose_db_engine
from .common.logger import log
from .common.config import settings
from .common.exceptions import (
    CampusLinkError, AuthenticationError, AuthorizationError, ValidationError,
    ConflictError, DuplicateObligation, TransientStoreError, TooManyAttempts
)
from .common.rate_limit import limiter
from .api import auth, users, tenants, fee_definitions, obligations, fee_reports

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles application startup and shutdown events.
    """
    # --- On App Startup ---
    log.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}...")
    create_db_engine_and_session_factory()

    yield # --- Application is now running ---

    # --- On App Shutdown ---
    if not settings.TEST_MODE:
        log.info("Application lifespan shutdown...")
        await dispose_db_engine()
    else:
        log.info("Skipping database engine disposal in TEST_MODE.")


# ---- CREATING THE APP ----
app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan
)
app.state.limiter = limiter

# --- Add CORS Middleware ---
origins = [
    # URL of testing frontend
    "http://localhost",
    "http://localhost:3000",
]

# Extend with environment-specific origins
origins.extend(settings.BACKEND_CORS_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],)
# --- End of CORS Middleware ---


# --- Exception Handlers ---

def _error_response(exc: CampusLinkError) -> JSONResponse:
    content = {"detail": exc.detail}
    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

@app.exception_handler(CampusLinkError)
async def campus_link_error_handler(request: Request, exc: CampusLinkError):
    # The specific reason is logged; the client only ever sees the class's public detail.
    if isinstance(exc, (AuthenticationError, AuthorizationError)):
        log.warning(f"{request.method} {request.url.path} -> {exc.status_code} {type(exc).__name__}: {exc.reason}")
    else:
        log.info(f"{request.method} {request.url.path} -> {exc.status_code} {type(exc).__name__}: {exc.reason}")
    return _error_response(exc)

def conflict_for_integrity_error(exc: IntegrityError) -> ConflictError | DuplicateObligation:
    message = str(exc.orig)
    # Both drivers name the table and say "unique" for this constraint.
    if "student_fee_obligations" in message and "unique" in message.lower():
        return DuplicateObligation(message)
    return ConflictError(message)

@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    log.warning(f"{request.method} {request.url.path} -> integrity violation: {exc.orig}")
    return _error_response(conflict_for_integrity_error(exc))

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    client = request.client.host if request.client else "unknown"
    log.warning(f"SECURITY: {request.method} {request.url.path} throttled for {client}: {exc.detail}")
    return _error_response(TooManyAttempts(str(exc.detail)))

@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def transient_store_error_handler(request: Request, exc: Exception):
    log.error(f"{request.method} {request.url.path} -> storage unavailable: {exc}", exc_info=True)
    return _error_response(TransientStoreError(str(exc)))


@app.get("/")
async def health_check():
    return {"status": "ok", "message": f"{settings.APP_NAME} is running"}

app.include_router(auth.router)
app.include_router(users.user_api_router)
app.include_router(users.users_admin_router)
app.include_router(tenants.router)
app.include_router(fee_definitions.router)
app.include_router(obligations.obligations_router)
app.include_router(obligations.payments_router)
app.include_router(fee_reports.router)
