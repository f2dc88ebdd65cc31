# giftcart/api/errors.py
from fastapi import HTTPException

from giftcart.domain.errors import ServiceError


def as_http_error(e: ServiceError) -> HTTPException:
    """Blad domeny -> HTTP ze stabilnym kodem dla klienta."""
    return HTTPException(status_code=e.status_code, detail={"code": e.code, "message": e.message})
