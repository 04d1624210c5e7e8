"""Domain errors raised by the service layer and their HTTP translation."""

from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class MarketplaceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self):
        return self.message


class ValidationError(MarketplaceError):
    """Malformed or missing input. ``field`` names the offending attribute."""

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_detail(self):
        loc = ["body", self.field] if self.field else ["body"]
        return [{"loc": loc, "msg": self.message, "type": "value_error"}]


class ForbiddenError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT


async def _handle_marketplace_error(request: Request, exc: MarketplaceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketplaceError, _handle_marketplace_error)
