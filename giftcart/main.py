# giftcart/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import uvicorn

from giftcart.data.database import Base, engine
from giftcart.api.routers import carts, health, orders, payments, wallet
from giftcart.utils.logging import get_logger
from giftcart.utils.settings import DEBUG

# IMPORT WSZYSTKICH MODELI NA POCZĄTKU (PRZED JAKIMKOLWIEK CREATE_ALL)
import giftcart.data.models  # noqa: F401

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Initializing database, tables: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise
    yield


async def invalid_request(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:])
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return JSONResponse(status_code=400, content={"detail": {"code": "validation_error", "message": message}})


async def unhandled_error(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    # surowy tekst bledu tylko w trybie DEBUG
    message = f"{exc.__class__.__name__}: {exc}" if DEBUG else "Internal server error"
    return JSONResponse(status_code=500, content={"detail": {"code": "internal_error", "message": message}})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Gift Cart Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_exception_handler(RequestValidationError, invalid_request)
    app.add_exception_handler(Exception, unhandled_error)

    # Include routers
    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(wallet.router)
    app.include_router(orders.router)
    app.include_router(payments.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
