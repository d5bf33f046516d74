"""Correlation ID middleware for request tracking."""

import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from structlog.contextvars import bind_contextvars, clear_contextvars

REQUEST_ID_HEADER = "X-Request-ID"


class CorrelationMiddleware(BaseHTTPMiddleware):
    """
    Assigns a correlation ID to each request.

    The ID is taken from the ``X-Request-ID`` header when it is a valid UUID,
    bound to the structlog context, stored on ``request.state`` and echoed
    back in the response headers.
    """

    @staticmethod
    def _validate_correlation_id(value: str | None) -> bool:
        if not value:
            return False
        try:
            uuid.UUID(value)
        except (ValueError, AttributeError, TypeError):
            return False
        return True

    def _get_correlation_id(self, request: Request) -> str:
        header_value = request.headers.get(REQUEST_ID_HEADER, "")
        if self._validate_correlation_id(header_value):
            return str(header_value)
        return str(uuid.uuid4())

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        clear_contextvars()

        correlation_id = self._get_correlation_id(request)
        bind_contextvars(correlation_id=correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response
