"""
Centralized Error Handlers for the MeetRoom signaling server

Global FastAPI exception handlers that render every error in one response
shape, plus the helpers the WebSocket gateway uses to report errors back to
a single connection.
"""

from traceback import format_exc
from typing import Any, Union

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from meetroom.config import settings
from meetroom.exceptions import AppException, ErrorCode
from meetroom.utils.logging_config import get_logger

logger = get_logger(__name__)


class ErrorResponse:
    """
    Standard error response format.

    Every API error uses this shape:
    {
        "success": false,
        "error": "ERROR_CODE",
        "message": "Message shown to the user",
        "details": {...},  // Optional
        "status_code": 400
    }
    """

    @staticmethod
    def create(
        error_code: Union[ErrorCode, str],
        message: str,
        status_code: int,
        details: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response: dict[str, Any] = {
            "success": False,
            "error": error_code.value if isinstance(error_code, ErrorCode) else error_code,
            "message": message,
            "status_code": status_code,
        }
        if details:
            response["details"] = details
        return response


def log_error(
    error: Exception,
    request: Request | None = None,
    level: str = "ERROR",
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Log errors consistently.

    Args:
        error: Exception object
        request: FastAPI Request object (optional)
        level: Log level (ERROR, WARNING, INFO)
        extra: Extra log fields
    """
    log_data: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }

    if request:
        client_host: str | None = None
        if request.client is not None:
            client_host = request.client.host
        log_data.update({
            "method": request.method,
            "url": str(request.url),
            "client": client_host,
        })

    if extra:
        log_data.update(extra)

    logger.log(level.upper(), "Error occurred", extra=log_data)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register every exception handler on the FastAPI application.

    Called from main.py.
    """

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request, exc: AppException
    ) -> JSONResponse:
        log_error(exc, request, level="WARNING")

        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse.create(
                error_code=exc.code,
                message=exc.message,
                status_code=exc.status_code,
                details=exc.details if exc.details else None,
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        error_code_map = {
            400: ErrorCode.VALIDATION_ERROR,
            403: ErrorCode.PERMISSION_DENIED,
            404: ErrorCode.NOT_FOUND,
            422: ErrorCode.VALIDATION_ERROR,
            429: ErrorCode.RATE_LIMIT_EXCEEDED,
            500: ErrorCode.INTERNAL_SERVER_ERROR,
        }
        error_code = error_code_map.get(exc.status_code, ErrorCode.INTERNAL_SERVER_ERROR)

        log_error(exc, request, level="WARNING")

        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse.create(
                error_code=error_code,
                message=str(exc.detail) if exc.detail else "HTTP error",
                status_code=exc.status_code,
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"][1:])  # skip 'body'/'path'
            errors.append({
                "field": field,
                "message": error["msg"],
                "type": error["type"],
            })

        log_error(
            exc,
            request,
            level="WARNING",
            extra={"validation_errors": errors},
        )

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ErrorResponse.create(
                error_code=ErrorCode.VALIDATION_ERROR,
                message="Validation error - please check your input",
                status_code=422,
                details={"validation_errors": errors},
            ),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """
        Catch-all handler. Details are only exposed in debug mode.
        """
        log_error(exc, request, level="ERROR")

        if settings.DEBUG:
            message = f"{type(exc).__name__}: {str(exc)}"
            details = {"traceback": format_exc()}
        else:
            message = "An unexpected error occurred. Please try again later."
            details = None

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse.create(
                error_code=ErrorCode.INTERNAL_SERVER_ERROR,
                message=message,
                status_code=500,
                details=details,
            ),
        )


# ==================== WebSocket Error Handling ====================

class WebSocketErrorHandler:
    """
    Error handling utility for WebSocket connections.

    Errors are reported to the requesting connection only; nothing is
    broadcast and room state is left as it was.
    """

    @staticmethod
    async def send_error_message(websocket, error: AppException) -> bool:
        """
        Send an error event for an AppException to one WebSocket.

        The event name comes from the exception (``room-error``,
        ``chat-error``, ``error`` ...).

        Returns:
            bool: True if the message was sent
        """
        payload: dict[str, Any] = {"error": error.code.value, "message": error.message}
        if error.details:
            payload["details"] = error.details
        try:
            await websocket.send_json({"type": error.event, "data": payload})
            return True
        except Exception as e:
            log_error(e, level="WARNING", extra={"failed_message": error.message})
            return False

    @staticmethod
    def log_websocket_error(
        error: Exception,
        room_id: str | None = None,
        user_id: str | None = None,
        message_type: str | None = None,
    ) -> None:
        """
        Log WebSocket errors in a consistent format.

        Args:
            error: Exception object
            room_id: Room ID (if any)
            user_id: Connection ID (if any)
            message_type: Message type (if any)
        """
        log_data: dict[str, Any] = {
            "error_type": type(error).__name__,
            "error_message": str(error),
        }

        if room_id:
            log_data["room_id"] = room_id
        if user_id:
            log_data["user_id"] = user_id
        if message_type:
            log_data["message_type"] = message_type

        logger.warning("WebSocket error occurred", extra=log_data)
