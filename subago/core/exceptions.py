"""Application-level exceptions and FastAPI exception handlers."""


import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)

class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: str | None = None):
        msg = f"{entity} no encontrado" if not entity_id else f"{entity} '{entity_id}' no encontrado"
        super().__init__(msg, status_code=404, code="NOT_FOUND")

class ForbiddenError(AppException):
    def __init__(self, message: str = "Acceso denegado"):
        super().__init__(message, status_code=403, code="FORBIDDEN")

class UnauthorizedError(AppException):
    def __init__(self, message: str = "Autenticación requerida"):
        super().__init__(message, status_code=401, code="UNAUTHORIZED")

class ConflictError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=409, code="CONFLICT")

class ValidationError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=422, code="VALIDATION_ERROR")

class BadRequestError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=400, code="BAD_REQUEST")

class BidRejectedError(AppException):
    """A bid that failed a business rule. `reason_code` is the realtime error code."""

    def __init__(
        self,
        message: str,
        reason_code: str = "INVALID_BID",
        status_code: int = 400,
        next_valid: float | None = None,
    ):
        self.reason_code = reason_code
        self.next_valid = next_valid
        super().__init__(message, status_code=status_code, code=reason_code)

# ---------------------------------------------------------------------------
# Sign-in failures (one subclass per reason the login form distinguishes)
# ---------------------------------------------------------------------------

class SignInError(AppException):
    def __init__(self, message: str, status_code: int = 401, code: str = "SIGN_IN_ERROR"):
        super().__init__(message, status_code=status_code, code=code)

class CredentialsParseError(SignInError):
    def __init__(self, message: str = "Credenciales con formato inválido"):
        super().__init__(message, status_code=400, code="CREDENTIALS_PARSE_ERROR")

class MemberNotFoundError(SignInError):
    def __init__(self, message: str = "Usuario no encontrado"):
        super().__init__(message, code="MEMBER_NOT_FOUND")

class MemberNotActiveError(SignInError):
    def __init__(self, message: str = "Usuario no activo"):
        super().__init__(message, status_code=403, code="MEMBER_NOT_ACTIVE")

class InvalidCredentialsError(SignInError):
    def __init__(self, message: str = "Credenciales inválidas"):
        super().__init__(message, code="INVALID_CREDENTIALS")

# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        body = _error_body("VALIDATION_ERROR", "Datos inválidos")
        body["error"]["details"] = jsonable_encoder(exc.errors())
        return JSONResponse(status_code=422, content=body)

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content=_error_body("NOT_FOUND", "Recurso no encontrado"),
        )

    @app.exception_handler(500)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body("INTERNAL_ERROR", "Ocurrió un error inesperado"),
        )
