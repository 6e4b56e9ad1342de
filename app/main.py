import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_booking,  # noqa: F401
    models_invoice,  # noqa: F401
    models_transaction,  # noqa: F401
)
from .config import ALLOWED_ORIGINS
from .database import Base, engine
from .domain.bookings import cron_router as booking_cron_router
from .domain.bookings import router as bookings_router
from .domain.calendar import router as calendar_router
from .domain.transactions import router as transactions_router
from .schema_capabilities import get_schema_capabilities

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    get_schema_capabilities(engine)

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="RevGuard Bookings API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Flatten request validation failures to a single 400 message.

    A missing or malformed Authorization header is reported as 401 instead.
    """
    errors = exc.errors()
    for error in errors:
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    logger.warning(f"Validation error for {request.url.path}: {errors}")
    return JSONResponse(status_code=400, content={"error": _validation_message(errors)})


def _validation_message(errors) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    message = str(first.get("msg") or "Invalid request")
    if message.startswith("Value error, "):
        return message[len("Value error, ") :]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    return f"{'.'.join(loc)}: {message}" if loc else message


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"{request.method} {request.url.path} - Database error: {str(exc)}")
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# CORS Configuration
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(bookings_router)
app.include_router(calendar_router)
app.include_router(booking_cron_router)
app.include_router(transactions_router)


@app.get("/")
def root():
    return {"message": "RevGuard Bookings API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
