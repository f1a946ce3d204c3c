from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    default_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status_code
        super().__init__(self.message)


class ValidationError(AppError):
    """A ledger transaction is missing fields or carries malformed values."""

    default_status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(AppError):
    """Employee, leave type, policy, or ledger entry does not exist."""

    default_status_code = status.HTTP_404_NOT_FOUND


class InsufficientBalanceError(AppError):
    """A debit would take the balance below zero."""

    default_status_code = status.HTTP_409_CONFLICT

    def __init__(self, available: object, required: object) -> None:
        self.available = available
        self.required = required
        super().__init__(f"Insufficient leave balance. Available: {available}, Required: {required}")


class AlreadyReversedError(AppError):
    """The ledger entry already has a compensating reversal."""

    default_status_code = status.HTTP_409_CONFLICT


class NotReversibleError(AppError):
    """Only debit, adjustment_debit and penalty entries can be reversed."""

    default_status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class PersistenceError(AppError):
    """The ledger store could not complete the write."""

    default_status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
