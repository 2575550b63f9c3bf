# main.py
import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from listeners_club import config
from listeners_club.http_api.router import router as api_router
from listeners_club.http_api.rate_limiter import RateLimitMiddleware
from listeners_club.http_api.logging_middleware import LoggingMiddleware
from listeners_club.db.init_collections import init_mongodb

logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Listeners Club API",
    version="1.0.0"
)

app.add_middleware(RateLimitMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api", tags=["API"])

def init_database():
    """Initialize database collections"""
    try:
        logger.info("🗄️  Initializing database...")

        if config.DB_RESET_ON_STARTUP:
            logger.warning("🔄 Reinitializing database (drop existing collections)")

        init_mongodb(drop_existing=config.DB_RESET_ON_STARTUP, insert_samples=config.DB_INSERT_SAMPLES)

    except Exception as e:
        logger.error(f"❌ Database initialization failed: {e}")
        logger.warning("⚠️  Server starting without database initialization")

@app.on_event("startup")
def startup_event():
    init_database()
    logger.info("🚀 Server startup complete!")

def run():
    uvicorn.run(app, host="0.0.0.0", port=5001)

if __name__ == "__main__":
    run()
