"""
Innkeeper application entry point
Front-desk billing and cash-register API
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from innkeeper import __version__
from innkeeper.config import settings
from innkeeper.database import init_db
from innkeeper.errors import LedgerError
from innkeeper.routers import (
    auth, cash_register, rooms, customers, bookings, payments, blacklist, products
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    init_db()

    from innkeeper.services.event_handlers import register_event_handlers
    register_event_handlers()

    logger.info(f"{settings.APP_NAME} {__version__} started")
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="Booking billing and cash-session ledger for short-stay lodging",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """Rejected ledger operations -> {"error": code, "detail": message, ...}"""
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(auth.router)
app.include_router(cash_register.router)
app.include_router(rooms.router)
app.include_router(customers.router)
app.include_router(bookings.router)
app.include_router(payments.router)
app.include_router(blacklist.router)
app.include_router(products.router)


@app.get("/")
def root():
    return {
        "name": settings.APP_NAME,
        "version": __version__,
    }


@app.get("/health")
def health_check():
    """Liveness"""
    return {"status": "healthy"}
