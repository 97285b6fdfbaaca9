from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AppError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Malformed input: date/time format, missing field, disallowed status value."""
    status_code = 400


class AuthorizationError(AppError):
    """Missing or invalid credential, role mismatch, or acting on someone else's record."""
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    """The requested slot is not available."""
    status_code = 409


class InvalidTransitionError(ConflictError):
    """The appointment's current status does not allow the requested transition."""


def create_error_response(error_message: str, status_code: int = 400) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message
    }


def create_success_response(**payload) -> dict:
    """Create a standardized success response"""
    return {"success": True, **payload}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.message, exc.status_code)
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(str(exc.detail), exc.status_code)
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content=create_error_response(message, 400))
