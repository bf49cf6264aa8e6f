import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from banks import repository as banks_repository
from banks import router as banks_router
from banks.cache import CatalogCache
from banks.service import CatalogService
from core import brasilapi, db
from core.errors import AppError, error_body

logger = logging.getLogger(__name__)


def cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "http://localhost:4200")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def build_catalog_service() -> CatalogService:
    cache = CatalogCache(source=brasilapi.fetch_banks, store=banks_repository)
    return CatalogService(cache=cache, overrides=banks_repository)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One DB pool and one catalog cache per process.
    await db.init_pool()
    app.state.catalog_service = build_catalog_service()
    try:
        yield
    finally:
        await db.close_pool()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_error path=%s code=%s message=%s", request.url.path, exc.code, exc.message)
    else:
        logger.warning("request_error path=%s code=%s message=%s", request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(
            status=exc.status_code,
            code=exc.code,
            error=exc.error,
            message=exc.message,
            path=request.url.path,
        ),
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    field_errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]) or "body",
            "message": str(err.get("msg", "")),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=error_body(
            status=400,
            code="REQ_BODY_INVALID",
            error="VALIDATION_ERROR",
            message="Invalid request.",
            path=request.url.path,
            field_errors=field_errors,
        ),
    )


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error = "UNAUTHORIZED" if exc.status_code == 401 else "HTTP_ERROR"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(
            status=exc.status_code,
            code=f"HTTP_{exc.status_code}",
            error=error,
            message=str(exc.detail),
            path=request.url.path,
        ),
        headers=getattr(exc, "headers", None),
    )


app.include_router(banks_router.router, tags=["banks"])


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "bank-catalog api"}
