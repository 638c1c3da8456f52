# app/services/errors.py
"""
Error kinds raised by the allocation services.

Routers translate them into HTTP status codes. NotFoundError and
InvalidArgumentError also derive from LookupError / ValueError so that the
generic `except LookupError` / `except ValueError` handlers keep working.
"""
from typing import List, Optional


class AllocationError(Exception):
    code = "INTERNAL"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgumentError(AllocationError, ValueError):
    code = "INVALID_ARGUMENT"


class NotFoundError(AllocationError, LookupError):
    code = "NOT_FOUND"


class EmptyStockError(AllocationError):
    """No unassigned lead is left in the campaign. Not a failure of the request itself."""

    code = "EMPTY_STOCK"


class CrossOfficeForbiddenError(AllocationError):
    code = "CROSS_OFFICE_FORBIDDEN"


class PermissionDeniedError(AllocationError):
    code = "PERMISSION_DENIED"

    def __init__(self, message: str, blocked: Optional[List] = None):
        super().__init__(message)
        self.blocked = blocked or []
