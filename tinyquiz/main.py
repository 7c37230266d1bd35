"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.database import init_db, close_db
from .core.exceptions import TinyQuizError
from .core.logging import configure_logging, LoggingMiddleware
from .services.generator import get_generator
from .api import auth, quizzes, system

configure_logging(settings)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    """
    logger.info("Starting %s (%s)...", settings.APP_NAME, settings.ENVIRONMENT)
    init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down %s...", settings.APP_NAME)
    if get_generator.cache_info().currsize:
        await get_generator().aclose()
    close_db()
    logger.info("Shutdown complete")

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url=settings.DOCS_URL if not settings.is_production() else None,
    redoc_url=None,
    openapi_url=settings.OPENAPI_URL if not settings.is_production() else None,
    lifespan=lifespan,
)

origins = settings.cors_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials="*" not in origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.ENABLE_API_LOGGING:
    app.add_middleware(LoggingMiddleware)

# Exception handlers
def _error_body(message: str, details=None) -> dict:
    body = {"error": message}
    if details is not None and not settings.is_production():
        body["details"] = details
    return body

@app.exception_handler(TinyQuizError)
async def tinyquiz_exception_handler(request: Request, exc: TinyQuizError):
    """Map application errors to their status code."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message, exc_info=exc)
    else:
        logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)

    details = exc.details
    if details is None and exc.public_message != exc.message:
        details = exc.message
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.public_message, details))

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return JSONResponse(status_code=exc.status_code, content={"error": "Endpoint not found"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors."""
    logger.warning("Validation error on %s %s", request.method, request.url.path)
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation Error", "details": errors},
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    content = {"error": "Internal Server Error"}
    if settings.is_development():
        content["details"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)

# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": settings.APP_DESCRIPTION,
        "documentation": f"{settings.API_PREFIX}/docs",
    }

# Include API routers
app.include_router(auth.router, prefix=f"{settings.API_PREFIX}/auth", tags=["Auth"])
app.include_router(quizzes.router, prefix=f"{settings.API_PREFIX}/quiz", tags=["Quiz"])
app.include_router(system.router, prefix=settings.API_PREFIX)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tinyquiz.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
        workers=settings.WORKERS if not settings.RELOAD else 1,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=True,
    )
