import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from bookledger.api.routes import api_router
from bookledger.core.config import get_settings
from bookledger.core.exceptions import LedgerError, PartialWriteError, StoreWriteError
from bookledger.core.logging import configure_logging
from bookledger.db.base import Base
from bookledger.db.session import SessionLocal, engine
from bookledger.services.seed import seed_initial_data


settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger("bookledger.main")

app = FastAPI(title=settings.app_name)

origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    body = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, PartialWriteError):
        body["orphaned"] = exc.orphaned
    if isinstance(exc, StoreWriteError):
        logger.error("Store write failed", exc_info=exc, extra={"path": request.url.path})
    else:
        logger.info("Request rejected", extra={"path": request.url.path, "code": exc.code})
    return JSONResponse(status_code=exc.status_code, content=body)


@app.on_event("startup")
def startup_event() -> None:
    retries = 20
    while retries > 0:
        try:
            Base.metadata.create_all(bind=engine)
            break
        except OperationalError:
            retries -= 1
            if retries == 0:
                raise
            logger.warning("Database not ready, retrying", extra={"retries_left": retries})
            time.sleep(1)

    db = SessionLocal()
    try:
        seed_initial_data(db)
    finally:
        db.close()


@app.get("/")
def root() -> dict:
    return {
        "name": f"{settings.app_name} API",
        "version": "0.1.0",
        "docs": "/docs",
    }


app.include_router(api_router, prefix=settings.api_v1_prefix)
