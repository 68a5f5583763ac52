"""
Global exception handlers and custom exception classes.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

# Set up logging
logger = logging.getLogger(__name__)

class AppException(Exception):
    """
    Base exception class for application-specific exceptions.

    Subclasses carry a stable kind (their class), a default user-facing detail
    and the status code the HTTP boundary maps them to.
    """
    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: str = "Request failed"
    headers: dict = None

    def __init__(self, detail: str = None, status_code: int = None):
        self.detail = detail or self.detail
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.detail)


async def app_exception_handler(request: Request, exc: AppException):
    """
    Handler for application-specific exceptions.
    
    Args:
        request: The request that caused the exception
        exc: The exception instance
        
    Returns:
        JSONResponse: Standardized error response
    """
    logger.warning(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=exc.headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handler for request validation exceptions.
    
    Args:
        request: The request that caused the exception
        exc: The validation exception instance
        
    Returns:
        JSONResponse: Standardized error response with validation details
    """
    logger.info(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "message": "Validation error",
            "errors": [
                {"loc": list(error.get("loc", [])), "msg": error.get("msg"), "type": error.get("type")}
                for error in exc.errors()
            ]
        }
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Handler for unexpected faults (store unreachable, signing key missing, ...).

    The full context is logged here; the client only gets a generic message.
    """
    request_id = getattr(request.state, "request_id", None)
    logger.error(
        f"Unhandled error on {request.method} {request.url.path} (request {request_id}): {exc!r}",
        exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error"}
    )


# Register exception handlers with FastAPI app
def register_exception_handlers(app):
    """
    Register all exception handlers with the FastAPI application.
    
    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
