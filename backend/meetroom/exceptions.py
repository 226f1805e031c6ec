"""
Custom Exception Classes for the MeetRoom signaling server

Every error raised by the room core derives from AppException so that the
REST layer and the WebSocket gateway can render it the same way. Besides the
HTTP status code each exception carries the WebSocket event name used to
report it back to the requesting connection.
"""

from typing import Any, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for consistent error responses"""

    # Authorization (AUTH_xxx)
    PERMISSION_DENIED = "AUTH_009"

    # Room & membership (ROOM_xxx)
    ROOM_NOT_FOUND = "ROOM_001"
    NOT_ROOM_HOST = "ROOM_005"
    NOT_IN_ROOM = "ROOM_007"
    TARGET_NOT_FOUND = "ROOM_010"

    # Chat (CHAT_xxx)
    CHAT_DISABLED = "CHAT_001"
    RECIPIENT_NOT_FOUND = "CHAT_002"

    # WebSocket (WS_xxx)
    WS_INVALID_MESSAGE = "WS_002"

    # Validation (VAL_xxx)
    VALIDATION_ERROR = "VAL_001"
    NOT_FOUND = "DB_002"

    # General (GEN_xxx)
    INTERNAL_SERVER_ERROR = "GEN_001"
    RATE_LIMIT_EXCEEDED = "GEN_003"


class AppException(Exception):
    """
    Base exception class for all application errors.

    Attributes:
        message: Human readable error message
        code: Error code (ErrorCode enum)
        status_code: HTTP status code
        details: Extra error details (optional)
        event: WebSocket event used to report the error to the requester
    """

    event = "error"

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a response payload"""
        result = {
            "error": self.code.value,
            "message": self.message,
            "status_code": self.status_code,
        }
        if self.details:
            result["details"] = self.details
        return result


# ==================== Room Exceptions ====================

class RoomException(AppException):
    """Generic room error"""

    event = "room-error"

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.ROOM_NOT_FOUND,
        status_code: int = 404,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, status_code, details)


class RoomNotFoundException(RoomException):
    """Room does not exist"""

    def __init__(self, room_id: Optional[str] = None, message: str = "Room does not exist"):
        super().__init__(
            message,
            ErrorCode.ROOM_NOT_FOUND,
            404,
            {"room_id": room_id} if room_id else None,
        )


# ==================== Permission Exceptions ====================

class ForbiddenException(AppException):
    """Privilege check failed"""

    event = "chat-error"

    def __init__(
        self,
        message: str = "You are not allowed to do that",
        code: ErrorCode = ErrorCode.PERMISSION_DENIED,
    ):
        super().__init__(message, code, 403)


class NotRoomHostException(ForbiddenException):
    """Only the host may perform the action"""

    def __init__(self, message: str = "Only host can perform this action"):
        super().__init__(message, ErrorCode.NOT_ROOM_HOST)


class NotInRoomException(ForbiddenException):
    """The connection has not joined the room"""

    def __init__(self, message: str = "You are not a participant of this room"):
        super().__init__(message, ErrorCode.NOT_IN_ROOM)


class ChatDisabledException(ForbiddenException):
    """The requested chat mode is switched off by the host"""

    def __init__(self, message: str = "Chat is disabled"):
        super().__init__(message, ErrorCode.CHAT_DISABLED)


# ==================== Addressing Exceptions ====================

class RecipientNotFoundException(AppException):
    """Private message recipient could not be resolved"""

    event = "chat-error"

    def __init__(self, recipient: Optional[str] = None):
        super().__init__(
            "Recipient not found",
            ErrorCode.RECIPIENT_NOT_FOUND,
            404,
            {"recipient": recipient} if recipient else None,
        )


class TargetNotFoundException(AppException):
    """Host action target is not a participant of the room"""

    event = "chat-error"

    def __init__(self, message: str = "Target participant not found", target: Optional[str] = None):
        super().__init__(
            message,
            ErrorCode.TARGET_NOT_FOUND,
            404,
            {"target": target} if target else None,
        )


# ==================== WebSocket Exceptions ====================

class WebSocketInvalidMessageException(AppException):
    """Malformed WebSocket frame"""

    def __init__(self, reason: str = "Invalid message format", details: Optional[dict[str, Any]] = None):
        all_details: dict[str, Any] = {"reason": reason}
        if details:
            all_details.update(details)
        super().__init__(
            f"Invalid message: {reason}",
            ErrorCode.WS_INVALID_MESSAGE,
            400,
            all_details,
        )


class RateLimitExceededException(AppException):
    """Too many frames from one connection"""

    event = "rate-limit-exceeded"

    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(message, ErrorCode.RATE_LIMIT_EXCEEDED, 429)
