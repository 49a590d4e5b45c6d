"""Maps domain exceptions raised before streaming to JSON error responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chatstream.core.config.constants import HEADER_REQUEST_ID
from chatstream.core.exceptions import ChatStreamError
from chatstream.core.logging import get_logger, get_request_id

logger = get_logger(__name__)


async def chat_stream_error_handler(request: Request, exc: ChatStreamError) -> JSONResponse:
    if exc.request_id is None:
        exc.request_id = get_request_id()
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"Request failed: {exc.message}",
        error_type=type(exc).__name__,
        kind=exc.kind.value,
        status_code=exc.status_code,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers={HEADER_REQUEST_ID: exc.request_id or ""},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ChatStreamError, chat_stream_error_handler)
