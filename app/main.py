import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root regardless of where uvicorn is started
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.orders import router as orders_router
from app.core.config import is_razorpay_configured, settings
from app.core.database import engine, init_db, ping_db
from app.core.rate_limit import client_ip, limiter
from app.logging import request_id_var, setup_logging
from app.models import ErrorLog, SecurityLog
from app.services.errors import CheckoutError, PartialFailureError

setup_logging(level=logging.INFO)
log = logging.getLogger("coursepay")


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    log.info("Razorpay configured: %s", "yes" if is_razorpay_configured() else "NO (set RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET)")
    yield


app = FastAPI(
    title="CoursePay API",
    description="Course checkout with Razorpay and course access granting",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, message: str, data: dict | None = None) -> JSONResponse:
    body = {"success": False, "message": message}
    if data:
        body["data"] = data
    rid = getattr(request.state, "request_id", None)
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    try:
        with Session(engine) as db:
            db.add(SecurityLog(event="rate_limit", ip=client_ip(request), endpoint=request.url.path, detail="Rate limit exceeded"))
            db.commit()
    except Exception as e:
        log.warning("SecurityLog rate_limit write failed: %s", e)
    return _error_response(request, 429, "Too many requests, please retry in a minute")


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(CheckoutError)
def checkout_error_handler(request: Request, exc: CheckoutError) -> JSONResponse:
    data = {"orderId": exc.order_id} if isinstance(exc, PartialFailureError) else None
    return _error_response(request, exc.status_code, exc.message, data)


def _validation_error_message(exc: RequestValidationError) -> str:
    errs = exc.errors()
    if not errs:
        return "Invalid request"
    first = errs[0]
    loc = [str(p) for p in (first.get("loc") or []) if p != "body"]
    field = loc[-1] if loc else None
    if first.get("type") == "missing":
        return f"Missing required field: {field}" if field else "Request body is required"
    msg = first.get("msg") or "Invalid request"
    return f"{field}: {msg}" if field else msg


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    log.info("Request validation error (400): path=%s method=%s detail=%s", request.url.path, request.method, exc.errors())
    return _error_response(request, 400, _validation_error_message(exc))


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc)
    try:
        with Session(engine) as db:
            db.add(ErrorLog(
                endpoint=request.url.path,
                method=request.method,
                error_message=str(exc)[:2000],
                stack_trace=traceback.format_exc()[:10000],
            ))
            db.commit()
    except Exception as e:
        log.warning("ErrorLog write failed: %s", e)
    return JSONResponse(status_code=500, content={"success": False, "message": "Unexpected server error"})


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    token = request_id_var.set(request.state.request_id)
    start = time.perf_counter()
    try:
        response = await call_next(request)
        latency_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request.state.request_id
        log.info("method=%s path=%s status=%s latency_ms=%.2f", request.method, request.url.path, response.status_code, latency_ms)
    finally:
        request_id_var.reset(token)
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(orders_router)


@app.get("/health")
def health():
    return {
        "status": "ok",
        "database": "ok" if ping_db() else "error",
        "razorpay_configured": is_razorpay_configured(),
    }
