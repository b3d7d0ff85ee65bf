"""RFC 7807 Problem Details exception handlers for FastAPI hosts.

Enforcement points built with ``rolegate.enforcement`` raise
``RoleGateError`` subclasses; these handlers turn them into
standardized error responses.

Hosts that trace requests should store the trace ID on
``request.state.trace_id`` in their own middleware; the handler copies
it into the response body. Without it the field is omitted.

See: https://tools.ietf.org/html/rfc7807
"""

from functools import partial
from typing import TYPE_CHECKING, Any, cast

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from rolegate.core.errors.exceptions import RoleGateError


if TYPE_CHECKING:
    from starlette.types import ExceptionHandler


logger = structlog.get_logger()


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details response schema.

    Attributes:
        type: URI reference identifying the problem type
        title: Short human-readable summary
        status: HTTP status code
        detail: Human-readable explanation specific to this occurrence
        instance: URI reference identifying this specific occurrence
        trace_id: Value of ``request.state.trace_id`` when the host sets it
    """

    type: str
    title: str
    status: int
    detail: str
    instance: str | None = None
    trace_id: str | None = None

    model_config = {"extra": "allow"}


def _get_trace_id(request: Request) -> str | None:
    """Extract trace ID from request state if available."""
    return getattr(request.state, "trace_id", None)


def _get_error_type_uri(error_code: str, type_base_url: str | None) -> str:
    if not type_base_url:
        return "about:blank"
    return f"{type_base_url.rstrip('/')}/{error_code}"


async def rolegate_exception_handler(
    request: Request,
    exc: RoleGateError,
    type_base_url: str | None = None,
) -> JSONResponse:
    """Convert RoleGateError subclasses to Problem Details responses."""
    logger.warning(
        "rolegate_exception",
        error_code=exc.error_code,
        message=exc.message,
        status_code=exc.status_code,
        path=str(request.url.path),
        details=exc.details,
    )

    content: dict[str, Any] = ProblemDetail(
        type=_get_error_type_uri(exc.error_code, type_base_url),
        title=exc.error_code.replace("_", " ").title(),
        status=exc.status_code,
        detail=exc.message,
        instance=str(request.url.path),
        trace_id=_get_trace_id(request),
    ).model_dump(exclude_none=True)

    for key, value in exc.details.items():
        if key not in content:
            content[key] = value

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI, type_base_url: str | None = None) -> None:
    """Register the rolegate exception handler with a FastAPI app.

    Args:
        app: The host application
        type_base_url: Base URL for problem type URIs; "about:blank" when unset
    """
    handler = partial(rolegate_exception_handler, type_base_url=type_base_url)
    app.add_exception_handler(RoleGateError, cast("ExceptionHandler", handler))
