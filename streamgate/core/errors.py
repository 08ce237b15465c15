from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import uuid4

from fastapi import Request
from fastapi.responses import JSONResponse

QUOTA_SENTINEL = "insufficient_quota"
MODEL_NOT_FOUND_SENTINEL = "model_not_found"


class ErrorCategory(str, Enum):
    QUOTA = "quota"
    MODEL_NOT_FOUND = "model_not_found"
    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    UNKNOWN = "unknown"


class GatewayError(Exception):
    status_code = 500
    code = "gateway_error"
    kind = "gateway"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(GatewayError, ValueError):
    """Raised for a malformed message list, before any network call."""

    status_code = 422
    code = "invalid_messages"
    kind = "validation"


class ConfigurationError(GatewayError):
    code = "configuration_error"
    kind = "configuration"


class StateUnavailableError(GatewayError):
    """Raised when the rotation state cannot be opened or locked."""

    status_code = 503
    code = "rotation_state_unavailable"
    kind = "rotation"


class TransportError(GatewayError):
    """Connection-level failure talking to a provider."""

    status_code = 502
    code = "provider_connection_error"
    kind = "transport"

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider


class AIServiceError(GatewayError):
    """A provider failure normalized to one shape.

    Classification is derived from the stored fields on every access and is
    evaluated in a fixed order: quota, model not found, rate limit, auth.
    Quota exhaustion may also carry status 429 and takes precedence over the
    rate limit.
    """

    status_code = 502
    code = "provider_error"
    kind = "provider"

    def __init__(
        self,
        provider: str,
        http_status: int,
        error_code: str | None,
        error_type: str | None,
        message: str,
    ):
        super().__init__(message)
        self.provider = provider
        self.http_status = http_status
        self.error_code = error_code
        self.error_type = error_type

    def _matches(self, sentinel: str) -> bool:
        return self.error_code == sentinel or self.error_type == sentinel

    @property
    def is_quota(self) -> bool:
        return self._matches(QUOTA_SENTINEL)

    @property
    def is_model_not_found(self) -> bool:
        # streamed requests are accepted with 200 before the model is resolved
        return self.http_status == 200 and self._matches(MODEL_NOT_FOUND_SENTINEL)

    @property
    def is_rate_limit(self) -> bool:
        return self.http_status == 429 and not self.is_quota

    @property
    def is_auth(self) -> bool:
        return self.http_status == 401

    @property
    def category(self) -> ErrorCategory:
        if self.is_quota:
            return ErrorCategory.QUOTA
        if self.is_model_not_found:
            return ErrorCategory.MODEL_NOT_FOUND
        if self.is_rate_limit:
            return ErrorCategory.RATE_LIMIT
        if self.is_auth:
            return ErrorCategory.AUTH
        return ErrorCategory.UNKNOWN

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(provider={self.provider!r}, "
            f"http_status={self.http_status}, error_code={self.error_code!r}, "
            f"error_type={self.error_type!r}, message={self.message!r})"
        )


class UpstreamHTTPError(AIServiceError):
    """HTTP rejection (status >= 400) whose body carried no error object."""

    def __init__(self, provider: str, http_status: int):
        super().__init__(
            provider,
            http_status,
            None,
            None,
            f"Provider returned {http_status}",
        )


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    type: str
    request_id: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "type": self.type,
                "request_id": self.request_id,
            }
        }


def request_id_from_request(request: Request) -> str:
    return request.headers.get("x-request-id") or str(uuid4())


def gateway_error_response(exc: GatewayError, request_id: str) -> JSONResponse:
    envelope = ErrorEnvelope(
        code=exc.code, message=exc.message, type=exc.kind, request_id=request_id
    )
    response = JSONResponse(status_code=exc.status_code, content=envelope.as_dict())
    response.headers["x-request-id"] = request_id
    return response
