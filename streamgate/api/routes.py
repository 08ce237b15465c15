import json

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool

from streamgate.core.errors import request_id_from_request
from streamgate.services.chat_service import ChatService

router = APIRouter()

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


@router.get("/", response_class=PlainTextResponse)
def index() -> str:
    return "Hello world!"


@router.get("/healthz")
def healthz(request: Request) -> dict[str, object]:
    service: ChatService = request.app.state.chat_service
    return {"status": "ok", "providers": service.provider_names}


@router.api_route("/demo", methods=["GET", "POST"])
async def demo(request: Request) -> StreamingResponse:
    service: ChatService = request.app.state.chat_service
    request_id = request_id_from_request(request)
    prompt = request.query_params.get("message")
    if not prompt:
        prompt = await _message_from_body(request)

    # the rotation lock is a blocking call
    frames = await run_in_threadpool(service.open_reply, prompt, request_id)
    return StreamingResponse(
        frames,
        media_type="text/plain; charset=utf-8",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "x-request-id": request_id,
        },
    )


async def _message_from_body(request: Request) -> str | None:
    if request.headers.get("content-type", "").startswith(_FORM_TYPES):
        form = await request.form()
        return _non_empty(form.get("message"))
    raw = await request.body()
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(parsed, dict):
        return None
    return _non_empty(parsed.get("message"))


def _non_empty(value: object) -> str | None:
    return value if isinstance(value, str) and value else None
