import logging
from pymongo import MongoClient
from pymongo.database import Database
from typing import Optional

from listeners_club.config import MONGO_URL, MONGO_DATABASE, MONGO_TIMEOUT_MS

logger = logging.getLogger(__name__)

# Process-wide handles; tests swap in their own database through use_database()
_client: Optional[MongoClient] = None
_database: Optional[Database] = None

def get_mongodb_client() -> MongoClient:
    """Lazily open the shared client and fail fast if the server is unreachable"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {MONGO_URL}")
        client = MongoClient(MONGO_URL, serverSelectionTimeoutMS=MONGO_TIMEOUT_MS)

        try:
            client.admin.command('ping')
        except Exception as e:
            logger.error(f"❌ MongoDB connection failed: {e}")
            client.close()
            raise

        logger.info("✅ MongoDB connection successful")
        _client = client

    return _client

def get_database() -> Database:
    global _database
    if _database is None:
        _database = get_mongodb_client()[MONGO_DATABASE]
        logger.info(f"📁 Using database: {MONGO_DATABASE}")

    return _database

def use_database(database: Database):
    """Point the module at an already-open database (tests, scripts)"""
    global _database
    _database = database
    logger.info(f"📁 Using provided database: {database.name}")

def database_available() -> bool:
    """True when the configured database answers a ping"""
    try:
        get_database().command('ping')
        return True
    except Exception as e:
        logger.warning(f"⚠️  Database ping failed: {e}")
        return False

def close_connection():
    global _client, _database
    if _client is not None:
        _client.close()
        logger.info("🔌 MongoDB connection closed")
    _client = None
    _database = None
