import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from . import models  # noqa: F401  registers tables on Base.metadata
from .api import api_quote
from .core.config import settings
from .core.observability import setup_logging
from .database import Base, engine
from .utils.errors import QuoteError

setup_logging()
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

# ORJSONResponse keeps serialisation of Decimal-heavy payloads fast and consistent
app = FastAPI(title="Glass Quote API", default_response_class=ORJSONResponse)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("CORS origins set to: %s", settings.CORS_ORIGINS)


@app.exception_handler(QuoteError)
async def quote_error_handler(request: Request, exc: QuoteError):
    """Render business errors as ``{"detail": {"message", "field_errors"}}``."""
    http_exc = exc.to_http()
    return ORJSONResponse(
        status_code=http_exc.status_code,
        content={"detail": http_exc.detail},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    field_errors = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        field_errors[".".join(loc) or "body"] = err.get("msg", "invalid")
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": {
                "message": "Datos inválidos",
                "field_errors": field_errors,
            }
        },
    )


@app.get("/health", tags=["health"])
async def health():
    """Liveness probe: process can respond; does not touch the DB."""
    return {"status": "ok"}


api_prefix = settings.API_V1_STR

app.include_router(api_quote.router, prefix=api_prefix, tags=["quotes"])
