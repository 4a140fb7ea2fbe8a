"""FastAPI application for the Value Chain Investment Simulation."""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env from repo root so DATABASE_URL etc. work when set locally
load_dotenv(Path(__file__).resolve().parent / ".env")

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from database import check_connection, engine
from games import router as games_router
from models import Base


def _uses_sql_store() -> bool:
    return os.getenv("KV_BACKEND", "sql").lower() == "sql"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: connect to the database and create the key/value tables."""
    if _uses_sql_store():
        if check_connection():
            try:
                Base.metadata.create_all(bind=engine)
                logger.info("Database connected: tables ready")
            except SQLAlchemyError as e:
                logger.warning("Database initialization failed: %s. Will retry on requests.", e)
        else:
            logger.warning("Database unavailable at startup. /health will report status.")

    yield

    try:
        engine.dispose()
        logger.info("Database connection pool disposed")
    except Exception as e:
        logger.warning(f"Error disposing database connection pool: {e}")


app = FastAPI(title="Value Chain Investment Simulation", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(games_router, prefix="/api/game", tags=["game"])


def check_db():
    """Test database connectivity."""
    if not _uses_sql_store():
        return "not used"
    return "connected" if check_connection(retry_count=1) else "disconnected"


@app.get("/health")
def health():
    """Health check for the hosting platform and frontend."""
    return {
        "status": "healthy",
        "database": check_db(),
    }
