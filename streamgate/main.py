import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from streamgate.api.routes import router
from streamgate.config.settings import get_settings
from streamgate.core.errors import GatewayError, gateway_error_response, request_id_from_request
from streamgate.core.logging import configure_logging
from streamgate.providers.registry import build_rotator
from streamgate.services.chat_service import ChatService

logger = logging.getLogger("streamgate.api")


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="streamgate", version="0.1.0")
    app.state.chat_service = ChatService(build_rotator(settings))

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        request_id = request_id_from_request(request)
        logger.warning(
            "request_failed",
            extra={"request_id": request_id, "error": exc.message},
        )
        return gateway_error_response(exc, request_id)

    app.include_router(router)
    return app


app = create_app()
