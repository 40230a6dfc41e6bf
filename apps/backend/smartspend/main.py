from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from .core.config import settings
from .core.errors import RateLimited, SmartSpendError
from .core.log import configure_logging
from .routers import register_routers
from .schemas import ActionResult

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="SmartSpend Backend", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Retry-After"],
)


def _failure(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    body = ActionResult.fail(message).model_dump(mode="json")
    return JSONResponse(status_code=status_code, content=body, headers=headers)


@app.exception_handler(SmartSpendError)
async def handle_domain_error(request: Request, exc: SmartSpendError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message)
    headers = None
    if isinstance(exc, RateLimited) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return _failure(exc.status_code, exc.message, headers)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return _failure(422, "; ".join(messages) or "Invalid request")


@app.get("/health")
def health():
    return {"status": "ok"}


register_routers(app)
