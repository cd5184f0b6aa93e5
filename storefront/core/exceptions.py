# storefront/core/exceptions.py
"""
Domain errors raised by the service layer.

Each class is an ``HTTPException`` so routers can let it propagate exactly like
the plain ``HTTPException`` raised elsewhere; ``code`` is a stable machine
readable identifier rendered next to ``detail`` by the handler in ``main.py``.
"""
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse


class StoreError(HTTPException):
    status_code = 400
    default_code = "ERROR"

    def __init__(self, detail: str, code: str | None = None):
        super().__init__(status_code=self.status_code, detail=detail)
        self.code = code or self.default_code

    def __repr__(self):
        return f"<{type(self).__name__}(code='{self.code}', detail='{self.detail}')>"


class ValidationError(StoreError):
    """Malformed or missing input (empty items, missing address, ...)."""
    status_code = 400
    default_code = "VALIDATION_ERROR"


class NotFoundError(StoreError):
    status_code = 404
    default_code = "NOT_FOUND"


class StateError(StoreError):
    """Illegal status transition, or an operation the current state forbids."""
    status_code = 409
    default_code = "INVALID_STATE"


class BusinessRuleError(StoreError):
    """Voucher bounds/expiry/usage violated, out of stock, duplicates."""
    status_code = 400
    default_code = "BUSINESS_RULE"


async def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )
