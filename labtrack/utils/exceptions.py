from fastapi import HTTPException, status


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES: machine-readable constants for frontend switch/case
# ═══════════════════════════════════════════════════════════════════════════════
class ErrorCode:
    VALIDATION_ERROR        = "VALIDATION_ERROR"
    NOT_FOUND               = "NOT_FOUND"
    QUANTITY_CONFLICT       = "QUANTITY_CONFLICT"
    INVALID_QUANTITY        = "INVALID_QUANTITY"
    INVALID_TRANSITION      = "INVALID_TRANSITION"
    NOT_BORROWABLE          = "NOT_BORROWABLE"
    ITEM_IN_USE             = "ITEM_IN_USE"
    CONCURRENT_UPDATE       = "CONCURRENT_UPDATE"
    CONSTRAINT_VIOLATION    = "CONSTRAINT_VIOLATION"
    PERSISTENCE_ERROR       = "PERSISTENCE_ERROR"
    INTERNAL_SERVER_ERROR   = "INTERNAL_SERVER_ERROR"


# ═══════════════════════════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════════════════════════
class AppException(HTTPException):
    """
    Base exception for all application-level errors.
    Carries a machine-readable error_code for frontend handling.
    """
    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: str,
        details: list | dict | None = None,
        field: str | None = None,
    ):
        self.message    = message
        self.error_code = error_code
        super().__init__(status_code=status_code, detail={
            "message": message,
            "error": {
                "code": error_code,
                "details": details,
                "field": field,
            }
        })


# ═══════════════════════════════════════════════════════════════════════════════
# CONCRETE EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════════

class ValidationException(AppException):
    def __init__(self, message: str, field: str | None = None, details: list | None = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, ErrorCode.VALIDATION_ERROR,
                         details=details, field=field)


class NotFoundException(AppException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(status.HTTP_404_NOT_FOUND, f"{resource} not found", ErrorCode.NOT_FOUND)


class QuantityConflictException(AppException):
    """Not enough units in a bucket to cover the requested movement."""
    def __init__(self, available: int, requested: int, bucket: str = "availableQuantity",
                 message: str | None = None):
        self.available = available
        self.requested = requested
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            message or f"Not enough items available. Available: {available}, Requested: {requested}",
            ErrorCode.QUANTITY_CONFLICT,
            details={"bucket": bucket, "available": available, "requested": requested},
        )


class InvalidQuantityException(AppException):
    def __init__(self, message: str, field: str | None = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, ErrorCode.INVALID_QUANTITY, field=field)


class InvalidTransitionException(AppException):
    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            f"{entity} cannot move from '{current}' to '{target}'",
            ErrorCode.INVALID_TRANSITION,
            details={"current": current, "target": target},
        )


class NotBorrowableException(AppException):
    def __init__(self, message: str = "This equipment is not available for borrowing"):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, ErrorCode.NOT_BORROWABLE)


class ItemInUseException(AppException):
    def __init__(self, message: str = "Inventory item still has units out on loan or in maintenance"):
        super().__init__(status.HTTP_409_CONFLICT, message, ErrorCode.ITEM_IN_USE)


class ConcurrencyException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_409_CONFLICT,
            "The record was modified by another request. Reload and retry.",
            ErrorCode.CONCURRENT_UPDATE,
        )


class PersistenceException(AppException):
    def __init__(self, message: str = "Failed to persist changes"):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message, ErrorCode.PERSISTENCE_ERROR)
