# agenda/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .db import init_db
from .routers.schedule_routes import router as schedule_router
from .routers.series_routes import router as series_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database tables ready")
    yield


app = FastAPI(title="Agenda", lifespan=lifespan)

app.include_router(schedule_router)
app.include_router(series_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
