import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from shared.core.config import settings
from shared.core.database import Base, get_leasing_db, leasing_engine
from shared.exception_handler import setup_exception_handlers
from .core.services import get_expiry_sweeper
from .crud.scheduler.scheduler_service import LeaseExpiryScheduler
from .models import leases, properties, tenants  # noqa: F401  (register tables)
from .router import leases_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s]: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create all tables
    Base.metadata.create_all(bind=leasing_engine)

    scheduler = None
    if settings.LEASE_SWEEP_ENABLED:
        scheduler = LeaseExpiryScheduler(
            get_expiry_sweeper(),
            interval_seconds=settings.LEASE_SWEEP_INTERVAL_SECONDS,
            run_on_start=settings.LEASE_SWEEP_RUN_ON_START,
        )
        scheduler.start()
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()


app = FastAPI(title="Leasing Service API", lifespan=lifespan)

# Allow requests from your React app
origins = [
    "http://localhost:8080",
    "http://127.0.0.1:8002"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

app.include_router(leases_router.router)


@app.get("/api/health")
def health(db: Session = Depends(get_leasing_db)):
    db.execute(text("SELECT 1"))
    return {"status": "healthy"}
