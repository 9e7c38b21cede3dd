import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from redis import Redis
from redis.exceptions import RedisError

from .config import settings
from .deps import get_redis, get_storage
from .errors import BookingError, StorageError
from .routers import availability_rules, bookings, holidays, services, slots
from .storage import BookingStorage

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.storage_backend == "sql":
        from .database import engine, is_sqlite
        from .models import Base

        url = settings.resolved_database_url
        if is_sqlite(url):
            # Local SQLite setup; other databases are migrated with alembic
            db_path = url.replace("sqlite:///", "", 1)
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            Base.metadata.create_all(bind=engine)
            logger.info("SQLite schema ready at %s", url)
    yield


app = FastAPI(title="Booking Availability API", lifespan=lifespan)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.code},
    )


app.include_router(services.router)
app.include_router(availability_rules.router)
app.include_router(holidays.router)
app.include_router(slots.router)
app.include_router(bookings.router)


@app.get("/health")
def health(
    storage: BookingStorage = Depends(get_storage),
    redis: Optional[Redis] = Depends(get_redis),
):
    try:
        storage_ok = storage.ping()
    except StorageError:
        storage_ok = False

    redis_status: Optional[bool] = None
    if redis is not None:
        try:
            redis_status = bool(redis.ping())
        except RedisError:
            redis_status = False

    return {"storage": storage_ok, "redis": redis_status}
