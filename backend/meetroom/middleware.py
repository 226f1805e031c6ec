"""
Adds X-RateLimit-* headers to HTTP responses of rate limited endpoints.
"""
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


class RateLimitHeaderMiddleware(BaseHTTPMiddleware):
    """
    Copies ``request.state.rate_limit_info`` (set by the ``rate_limit``
    decorator) into response headers.
    """

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)

        info = getattr(request.state, "rate_limit_info", None)
        if info:
            response.headers["X-RateLimit-Limit"] = str(info["limit"])
            response.headers["X-RateLimit-Remaining"] = str(info["remaining"])
            response.headers["X-RateLimit-Reset"] = str(info["reset"])

        return response
