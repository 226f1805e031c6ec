"""
In-memory rate limiting.
Supports both HTTP endpoints and WebSocket frames.
"""
import time
from typing import Optional, Callable
from functools import wraps
from fastapi import Request, HTTPException, status
from meetroom.config import settings


class RateLimiter:
    """
    Fixed window rate limiter keyed by an arbitrary client identifier.
    State lives in process memory; a single server instance is assumed.
    """

    def __init__(self):
        self._store: dict = {}

    def _get_key(self, key: str) -> dict:
        return self._store.get(key, {"count": 0, "reset_at": 0})

    def _cleanup(self):
        """Remove expired windows."""
        now = time.time()
        expired_keys = [
            k for k, v in self._store.items()
            if v.get("reset_at", 0) < now
        ]
        for k in expired_keys:
            del self._store[k]

    async def is_allowed(
        self,
        key: str,
        limit: int,
        window: int
    ) -> tuple[bool, dict]:
        """
        Check if request is allowed under rate limit.

        Args:
            key: Unique identifier (e.g., IP)
            limit: Maximum requests allowed
            window: Time window in seconds

        Returns:
            Tuple of (is_allowed, info_dict)
        """
        now = time.time()
        self._cleanup()
        data = self._get_key(key)

        # Reset if window expired
        if data["reset_at"] < now:
            data = {"count": 0, "reset_at": int(now + window)}

        data["count"] += 1
        self._store[key] = data

        is_allowed = data["count"] <= limit
        return is_allowed, {
            "limit": limit,
            "remaining": max(0, limit - data["count"]),
            "reset": data["reset_at"]
        }

    def reset(self):
        self._store.clear()


# Global HTTP rate limiter instance
limiter = RateLimiter()


def get_client_identifier(request: Request) -> str:
    """Client IP, honouring X-Forwarded-For when behind a proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip: str = "unknown"
        if request.client is not None:
            ip = request.client.host

    return f"ip:{ip}"


def rate_limit(
    limit: int,
    window: int,
    key_func: Optional[Callable] = None,
    identifier: str = "default"
):
    """
    Rate limiting decorator for FastAPI endpoints.

    The decorated endpoint must accept a ``request: Request`` argument.

    Args:
        limit: Maximum requests allowed
        window: Time window in seconds
        key_func: Optional function to generate custom key
        identifier: Endpoint identifier for the key

    Raises:
        HTTPException: When rate limit is exceeded
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            request = None
            for arg in args:
                if isinstance(arg, Request):
                    request = arg
                    break
            if not request:
                for v in kwargs.values():
                    if isinstance(v, Request):
                        request = v
                        break

            if request and settings.RATE_LIMIT_ENABLED:
                client_key = key_func(request) if key_func else get_client_identifier(request)
                full_key = f"rate_limit:{identifier}:{client_key}"

                is_allowed, info = await limiter.is_allowed(full_key, limit, window)
                request.state.rate_limit_info = info

                if not is_allowed:
                    raise HTTPException(
                        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                        detail="Rate limit exceeded. Please try again later.",
                        headers={
                            "X-RateLimit-Limit": str(info["limit"]),
                            "X-RateLimit-Remaining": "0",
                            "X-RateLimit-Reset": str(info["reset"]),
                            "Retry-After": str(window)
                        }
                    )

            return await func(*args, **kwargs)

        return wrapper
    return decorator


class WebSocketRateLimiter:
    """
    Rate limiter for WebSocket frames.
    Limits messages per connection within a sliding window plus a burst window.
    """

    def __init__(
        self,
        message_limit: int = 60,
        window_seconds: int = 60,
        burst_limit: int = 10,
        burst_window: int = 1
    ):
        """
        Args:
            message_limit: Max messages per window
            window_seconds: Time window in seconds
            burst_limit: Max messages in burst window
            burst_window: Burst window in seconds
        """
        self.message_limit = message_limit
        self.window = window_seconds
        self.burst_limit = burst_limit
        self.burst_window = burst_window
        # connection_id -> {"messages": [timestamps], "burst_start": float, "burst_count": int}
        self.connections: dict = {}

    def check_rate_limit(self, connection_id: str) -> tuple[bool, Optional[str]]:
        """
        Check if a frame from this connection is allowed.

        Returns:
            Tuple of (is_allowed, error_message)
        """
        now = time.time()

        if connection_id not in self.connections:
            self.connections[connection_id] = {
                "messages": [],
                "burst_start": now,
                "burst_count": 0
            }

        conn_data = self.connections[connection_id]

        # Drop timestamps outside the main window
        conn_data["messages"] = [
            ts for ts in conn_data["messages"]
            if now - ts < self.window
        ]

        if len(conn_data["messages"]) >= self.message_limit:
            return False, f"Rate limit exceeded: max {self.message_limit} messages per {self.window} seconds"

        if now - conn_data["burst_start"] > self.burst_window:
            conn_data["burst_start"] = now
            conn_data["burst_count"] = 0

        if conn_data["burst_count"] >= self.burst_limit:
            return False, f"Too many messages: max {self.burst_limit} messages per {self.burst_window} seconds"

        conn_data["messages"].append(now)
        conn_data["burst_count"] += 1

        return True, None

    def cleanup(self, connection_id: str = None):
        """Remove connection from tracking."""
        if connection_id and connection_id in self.connections:
            del self.connections[connection_id]


# Chat frames get a tighter budget than presence/control traffic
CHAT_MESSAGE_TYPES = frozenset({
    "send-chat-message",
    "send-private-message",
    "send-host-message",
    "send-system-message",
})

ws_chat_limiter = WebSocketRateLimiter(
    message_limit=settings.WS_CHAT_MESSAGE_LIMIT,
    window_seconds=60,
    burst_limit=settings.WS_CHAT_BURST_LIMIT,
    burst_window=1
)

ws_default_limiter = WebSocketRateLimiter(
    message_limit=settings.WS_DEFAULT_MESSAGE_LIMIT,
    window_seconds=60,
    burst_limit=settings.WS_DEFAULT_BURST_LIMIT,
    burst_window=1
)


def check_websocket_rate_limit(
    connection_id: str,
    message_type: Optional[str] = None
) -> tuple[bool, Optional[str]]:
    """
    Check WebSocket rate limit based on message type.

    Args:
        connection_id: Unique connection identifier
        message_type: Frame type (send-chat-message, toggle-audio, ...)

    Returns:
        Tuple of (is_allowed, error_message)
    """
    if not settings.RATE_LIMIT_ENABLED:
        return True, None
    if message_type in CHAT_MESSAGE_TYPES:
        return ws_chat_limiter.check_rate_limit(connection_id)
    return ws_default_limiter.check_rate_limit(connection_id)


def cleanup_websocket_rate_limit(connection_id: str):
    """Clean up rate limit tracking for a connection."""
    ws_chat_limiter.cleanup(connection_id)
    ws_default_limiter.cleanup(connection_id)
