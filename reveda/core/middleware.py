"""
Custom middleware for the FastAPI application.
"""
import time
import logging
from collections import defaultdict, deque
from typing import Deque, Dict, Iterable, Tuple
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import uuid

# Set up logging
logger = logging.getLogger(__name__)

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging request and response information.
    """
    def __init__(self, app: ASGIApp):
        super().__init__(app)
    
    async def dispatch(self, request: Request, call_next):
        """
        Process the request and log information.
        
        Args:
            request: The incoming request
            call_next: The next middleware or endpoint handler
            
        Returns:
            Response: The response from the next handler
        """
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        
        client_host = request.client.host if request.client else "unknown"
        logger.info(f"Request {request_id} started: {request.method} {request.url.path} from {client_host}")
        
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"Request {request_id} failed: {request.method} {request.url.path} "
                f"- Error: {str(e)} - Duration: {process_time:.4f}s"
            )
            raise

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            f"Request {request_id} completed: {request.method} {request.url.path} "
            f"- Status: {response.status_code} - Duration: {process_time:.4f}s"
        )
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window rate limiting per client IP and path group.

    This is a simple in-memory rate limiter local to one process. For several
    workers, use Redis or another shared store.

    Args:
        app: ASGI application
        rules: (path prefix, max requests) pairs; the first matching prefix applies
        window_seconds: Length of the window
    """
    def __init__(self, app: ASGIApp, rules: Iterable[Tuple[str, int]], window_seconds: int = 60):
        super().__init__(app)
        self.rules = list(rules)
        self.window_seconds = window_seconds
        self.requests: Dict[Tuple[str, str], Deque[float]] = defaultdict(deque)
        self._last_sweep = 0.0

    def _sweep(self, now: float) -> None:
        """Drop clients with no hits inside the window, at most once per window."""
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        stale = [key for key, hits in self.requests.items()
                 if not hits or now - hits[-1] >= self.window_seconds]
        for key in stale:
            del self.requests[key]

    def _limit_for(self, path: str):
        for prefix, limit in self.rules:
            if path.startswith(prefix):
                return prefix, limit
        return None, None

    async def dispatch(self, request: Request, call_next):
        prefix, limit = self._limit_for(request.url.path)
        if prefix is None:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        self._sweep(now)
        hits = self.requests[(client_ip, prefix)]
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()

        if len(hits) >= limit:
            logger.warning(f"Rate limit exceeded for IP {client_ip} on {prefix}")
            return JSONResponse(
                status_code=429,
                content={"success": False, "message": "Too many requests. Please try again later."}
            )

        hits.append(now)
        return await call_next(request)


def setup_middlewares(app, settings):
    """
    Set up all custom middlewares for the application.
    
    Args:
        app: FastAPI application instance
        settings: Application settings
    """
    auth_prefix = "/api/v1/auth"
    app.add_middleware(
        RateLimitMiddleware,
        rules=[
            (f"{auth_prefix}/resend-otp", settings.otp_rate_limit),
            (f"{auth_prefix}/signup", settings.auth_rate_limit),
            (f"{auth_prefix}/login", settings.auth_rate_limit),
            (f"{auth_prefix}/verify-otp", settings.auth_rate_limit),
            (f"{auth_prefix}/google-login", settings.auth_rate_limit),
        ],
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestLoggingMiddleware)
