"""
Error Handling Module for HURE Core Payroll

This module provides centralized error handling with:
- Custom exception hierarchy for the payroll engine
- Standardized error responses
- Error logging
- Database and collaborator service error handling
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

# Configure logging
logger = logging.getLogger("hurecore.errors")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_RULE_SET = "INVALID_RULE_SET"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    PAYROLL_PERIOD_NOT_FOUND = "PAYROLL_PERIOD_NOT_FOUND"
    PAYROLL_ENTRY_NOT_FOUND = "PAYROLL_ENTRY_NOT_FOUND"
    STAFF_NOT_FOUND = "STAFF_NOT_FOUND"
    RULE_SET_NOT_FOUND = "RULE_SET_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    VERSION_CONFLICT = "VERSION_CONFLICT"

    # Payroll lifecycle errors (409)
    PERIOD_FINALIZED = "PERIOD_FINALIZED"
    PERIOD_ARCHIVED = "PERIOD_ARCHIVED"
    PERIOD_NOT_FINALIZED = "PERIOD_NOT_FINALIZED"
    INVALID_PERIOD_TRANSITION = "INVALID_PERIOD_TRANSITION"

    # External Service Errors (502/503)
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"

    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(Exception):
    """Base exception for all application exceptions"""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = datetime.utcnow()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat() + "Z",
        }
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Base validation exception"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            field=field,
        )


class InvalidDateRangeException(ValidationException):
    """Invalid date range"""

    def __init__(self, start_date: str, end_date: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid date range: {start_date} to {end_date}. Start date must not be after end date.",
            code=ErrorCode.INVALID_DATE_RANGE,
            details={"start_date": start_date, "end_date": end_date},
        )


class InvalidAmountException(ValidationException):
    """Invalid monetary amount"""

    def __init__(self, amount: Any, field: str = "amount", message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid amount: {amount}. Amount must be a non-negative whole number of cents.",
            field=field,
            code=ErrorCode.INVALID_AMOUNT,
            details={"provided_amount": str(amount)},
        )


class InvalidRuleSetException(ValidationException):
    """Malformed statutory rule set"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            field=field,
            code=ErrorCode.INVALID_RULE_SET,
        )


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID]] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class PayrollPeriodNotFoundException(NotFoundException):
    """Payroll period not found"""

    def __init__(self, period_id: Union[str, UUID]):
        super().__init__(
            resource_type="Payroll period",
            resource_id=period_id,
            code=ErrorCode.PAYROLL_PERIOD_NOT_FOUND,
        )


class PayrollEntryNotFoundException(NotFoundException):
    """Payroll entry not found"""

    def __init__(self, entry_id: Optional[Union[str, UUID]] = None, message: Optional[str] = None):
        super().__init__(
            resource_type="Payroll entry",
            resource_id=entry_id,
            message=message,
            code=ErrorCode.PAYROLL_ENTRY_NOT_FOUND,
        )


class StaffNotFoundException(NotFoundException):
    """Staff member not found (or not active)"""

    def __init__(self, staff_id: str):
        super().__init__(
            resource_type="Staff member",
            resource_id=staff_id,
            code=ErrorCode.STAFF_NOT_FOUND,
        )


class RuleSetNotFoundException(NotFoundException):
    """No statutory rule set in effect"""

    def __init__(self, jurisdiction: str, as_of: Optional[datetime] = None):
        when = f" as of {as_of.isoformat()}" if as_of else ""
        super().__init__(
            resource_type="Statutory rule set",
            message=f"No active statutory rule set for {jurisdiction}{when}",
            code=ErrorCode.RULE_SET_NOT_FOUND,
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if resource_type:
            _details["resource_type"] = resource_type
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=_details,
        )


class DuplicateEntryException(ConflictException):
    """Duplicate entry exception"""

    def __init__(
        self,
        resource_type: str,
        field: str,
        value: str,
        message: Optional[str] = None,
    ):
        super().__init__(
            message=message or f"{resource_type} with {field} '{value}' already exists",
            resource_type=resource_type,
            code=ErrorCode.DUPLICATE_ENTRY,
            details={"field": field, "value": value},
        )


class ConcurrencyConflictException(ConflictException):
    """A concurrent writer changed the record first"""

    def __init__(self, resource_type: str, resource_id: Union[str, UUID], operation: str):
        super().__init__(
            message=f"{resource_type} '{resource_id}' was modified concurrently during {operation}. Reload and retry.",
            resource_type=resource_type,
            code=ErrorCode.VERSION_CONFLICT,
            details={"resource_id": str(resource_id), "operation": operation},
        )


# ============================================================================
# Payroll Lifecycle Exceptions
# ============================================================================

class PayrollLifecycleException(AppException):
    """Base class for payroll period state violations"""

    def __init__(
        self,
        message: str,
        period_id: Union[str, UUID],
        current_state: str,
        operation: str,
        code: ErrorCode,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details={
                "period_id": str(period_id),
                "current_state": current_state,
                "operation": operation,
            },
        )


class PeriodFinalizedException(PayrollLifecycleException):
    """Mutation attempted on a finalized payroll period"""

    def __init__(
        self,
        period_id: Union[str, UUID],
        operation: str = "modification",
        current_state: str = "finalized",
        code: ErrorCode = ErrorCode.PERIOD_FINALIZED,
    ):
        super().__init__(
            message=f"Cannot perform {operation} on {current_state} payroll period '{period_id}'",
            period_id=period_id,
            current_state=current_state,
            operation=operation,
            code=code,
        )


class PeriodArchivedException(PeriodFinalizedException):
    """Mutation attempted on an archived payroll period"""

    def __init__(self, period_id: Union[str, UUID], operation: str = "modification"):
        super().__init__(
            period_id=period_id,
            operation=operation,
            current_state="archived",
            code=ErrorCode.PERIOD_ARCHIVED,
        )


class NotFinalizedException(PayrollLifecycleException):
    """Operation requires a finalized payroll period"""

    def __init__(self, period_id: Union[str, UUID], operation: str):
        super().__init__(
            message=f"Cannot {operation} payroll period '{period_id}': finalize it first",
            period_id=period_id,
            current_state="draft",
            operation=operation,
            code=ErrorCode.PERIOD_NOT_FINALIZED,
        )


class InvalidPeriodTransitionException(PayrollLifecycleException):
    """No lifecycle edge exists for the requested transition"""

    def __init__(self, period_id: Union[str, UUID], current_state: str, operation: str):
        super().__init__(
            message=f"Cannot {operation} payroll period '{period_id}' while it is {current_state}",
            period_id=period_id,
            current_state=current_state,
            operation=operation,
            code=ErrorCode.INVALID_PERIOD_TRANSITION,
        )


# ============================================================================
# External Service Exceptions
# ============================================================================

class ExternalServiceException(AppException):
    """External service error exception"""

    def __init__(
        self,
        service_name: str,
        message: str,
        code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
        original_error: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        _details["service"] = service_name
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details=_details,
            original_error=original_error,
        )


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
) -> JSONResponse:
    """Create a standardized error response"""
    content = {
        "detail": {
            "code": code.value,
            "message": message,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }
    }
    if field:
        content["detail"]["field"] = field
    if details:
        content["detail"]["details"] = details

    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "code": exc.code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
        exc_info=exc.original_error,
    )

    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        field=exc.field,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException"""
    code_map = {
        400: ErrorCode.INVALID_INPUT,
        404: ErrorCode.NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
        502: ErrorCode.EXTERNAL_SERVICE_ERROR,
        503: ErrorCode.EXTERNAL_SERVICE_ERROR,
    }

    error_code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTPException: {exc.status_code} - {message}",
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        code=error_code,
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method, "errors": errors},
    )

    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists"
            error_code = ErrorCode.DUPLICATE_ENTRY
            status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, OperationalError):
        error_message = "Database operation failed"
        error_code = ErrorCode.CONNECTION_ERROR
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    logger.error(
        f"SQLAlchemyError: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=error_code,
        message=error_message,
        status_code=status_code,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions"""
    logger.critical(
        f"UnhandledException: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    # In production, don't expose internal error details
    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


# ============================================================================
# Utility Functions
# ============================================================================

def validate_cents(amount: Any, field: str = "amount") -> int:
    """Validate a monetary amount expressed in integer cents"""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidAmountException(amount, field)
    return amount
