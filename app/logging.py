"""
Logging configuration: one stdout handler for the app and uvicorn loggers.
Every line carries the request id set by the HTTP middleware ("-" outside a request).
Payment signature mismatches go out at WARNING, partial access grants at ERROR.
"""
import logging
import sys
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def setup_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
) -> None:
    logging.basicConfig(
        level=level,
        format=format_string or DEFAULT_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestIdFilter())
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "coursepay", "alembic"):
        logging.getLogger(name).setLevel(level)
