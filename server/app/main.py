import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from .config import settings
from .errors import FulfilmentError
from .routers import auth, blanket_orders, demand, health, inventory, items, reconciliation, releases

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FulfilmentError)
async def handle_fulfilment_error(request: Request, exc: FulfilmentError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


@app.exception_handler(OperationalError)
async def handle_operational_error(request: Request, exc: OperationalError):
    # Lock timeouts and dropped connections: the write may or may not have
    # landed, so the caller has to re-read state before trying again.
    logger.error("Transient database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": {"code": "TRANSIENT_ERROR", "message": "Database temporarily unavailable; re-query state before retrying."}},
    )


app.include_router(health.router)
app.include_router(auth.router)
app.include_router(items.router)
app.include_router(blanket_orders.router)
app.include_router(releases.router)
app.include_router(inventory.router)
app.include_router(reconciliation.router)
app.include_router(demand.router)


@app.get("/")
def root():
    return {"status": "ok"}
