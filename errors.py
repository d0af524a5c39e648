"""Error taxonomy shared by the services and the HTTP layer.

Validation, not-found and conflict errors are expected business outcomes and
carry enough detail for the caller to correct the request. ``InternalError``
is opaque to callers; the underlying cause is only logged.
"""

from typing import Any, Dict, Iterable, List, Optional

from fastapi import status


class AppError(Exception):
    """Base class for errors reported to API callers"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "InternalError"

    def __init__(self, detail: str, code: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        if code is not None:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.detail, "code": self.code}


class ValidationError(AppError):
    """Malformed or out-of-range input, with per-field messages"""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "ValidationError"

    def __init__(self, errors: List[Dict[str, str]], detail: str = "Validation failed"):
        super().__init__(detail)
        self.errors = errors

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["errors"] = self.errors
        return body


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NotFound"

    def __init__(self, entity: str):
        super().__init__(f"{entity} not found")
        self.entity = entity


class ConflictError(AppError):
    """Duplicate key, duplicate enrollment or exhausted capacity"""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "Conflict"


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "InternalError"


def field_errors(errors: Iterable[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into ``[{field, message}]``.

    The ``body``/``query``/``path`` prefix FastAPI adds to ``loc`` is dropped so
    the field name matches the payload key.
    """
    result = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        result.append({
            "field": ".".join(loc) or "__root__",
            "message": error.get("msg", "Invalid value"),
        })
    return result
