from pydantic import BaseModel
from typing import Any


# ─── Error Body ───────────────────────────────────────────────────────────────
class ErrorBody(BaseModel):
    code: str
    details: Any = None
    field: str | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: ErrorBody


# Documented on every router so the OpenAPI schema shows the error envelope
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation, quantity or transition error"},
    404: {"model": ErrorResponse, "description": "Record not found"},
    409: {"model": ErrorResponse, "description": "Concurrent update or constraint conflict"},
}


# ─── Helper Functions ─────────────────────────────────────────────────────────
def success_response(message: str, data: Any = None, **extra: Any) -> dict:
    """Return a standardized success dict (used in route handlers)."""
    body = {"success": True, "message": message, "data": data}
    body.update(extra)
    return body


def paginated_response(
    message: str,
    data: list,
    total: int,
    page: int,
    limit: int,
    **extra: Any,
) -> dict:
    """Return a standardized paginated dict."""
    total_pages = (total + limit - 1) // limit if limit > 0 else 0
    body = {
        "success": True,
        "message": message,
        "data": data,
        "meta": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        }
    }
    body.update(extra)
    return body
