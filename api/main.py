# api/main.py
from dotenv import load_dotenv
import os

env = os.getenv("APP_ENV", "local")
if env == "local":
    load_dotenv(".env.local")
else:
    load_dotenv(".env")

from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging
from database.db import init_db
from fastapi.middleware.cors import CORSMiddleware
from services.cache_service import CacheService

from api.routers import (
    health,
    graphs,
    analysis,
    sessions,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)
logger.info(f"🔧 Loaded environment: {env}")

CACHE_TTL_SECONDS = float(os.getenv("CACHE_TTL_SECONDS", "3600"))
CACHE_SWEEP_INTERVAL = float(os.getenv("CACHE_SWEEP_INTERVAL", "60"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting Paper Graph backend: initializing DB")
    try:
        init_db()
    except Exception as e:
        logger.error(f"❌ Failed to initialize database: {e}", exc_info=True)
        raise

    app.state.cache = CacheService(default_ttl=CACHE_TTL_SECONDS)
    app.state.cache.start_sweeper(CACHE_SWEEP_INTERVAL)
    yield
    await app.state.cache.stop_sweeper()
    logger.info("🛑 Shutting down Paper Graph backend")


app = FastAPI(
    title="Paper Graph API",
    version="1.0.0",
    description="Builds and stores citation relationship graphs for academic papers.",
    lifespan=lifespan
)

# CORS Configuration
origins = []
if env == "local":
    origins = ["http://localhost:3000", "http://localhost:5173"]  # Common dev ports
else:
    # Production origins from environment variable
    origins_str = os.getenv("ALLOWED_ORIGINS", "")
    origins = [origin.strip() for origin in origins_str.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(health.router)
app.include_router(graphs.router, prefix="/graphs", tags=["Graphs"])
app.include_router(analysis.router, prefix="/analysis", tags=["Analysis"])
app.include_router(sessions.router, prefix="/sessions", tags=["Sessions"])


@app.get("/")
async def root():
    return {"message": "Paper Graph backend running 🚀"}
