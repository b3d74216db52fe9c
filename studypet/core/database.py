# studypet/core/database.py
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING
from studypet.core.settings import settings
import structlog

log = structlog.get_logger(__name__)

# Collection names
PETS_COLLECTION = "pets"
SPECIES_COLLECTION = "species"
STUDY_STATS_COLLECTION = "study_stats"
WALLETS_COLLECTION = "wallets"


class MongoDBConnection:
    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None


db_connection = MongoDBConnection()


async def connect_to_mongo(uri: Optional[str] = None, database_name: Optional[str] = None):
    database_name = database_name or settings.MONGO_DATABASE_NAME
    log.info("Connecting to MongoDB...", database=database_name)
    # tz_aware so pet timestamps come back as UTC-aware datetimes
    db_connection.client = AsyncIOMotorClient(uri or settings.MONGO_CONNECTION_URI, tz_aware=True)
    db_connection.db = db_connection.client[database_name]
    try:
        await db_connection.client.admin.command("ping")
        await ensure_indexes(db_connection.db)
        log.info("Successfully connected to MongoDB.")
    except Exception as e:
        log.error("Failed to connect to MongoDB", error=str(e))
        raise


async def ensure_indexes(db: AsyncIOMotorDatabase):
    """One pet per user, one wallet per user; pets are upserted by id."""
    await db[PETS_COLLECTION].create_index([("owner_id", ASCENDING)], unique=True)
    await db[PETS_COLLECTION].create_index([("id", ASCENDING)], unique=True)
    await db[WALLETS_COLLECTION].create_index([("user_id", ASCENDING)], unique=True)
    await db[STUDY_STATS_COLLECTION].create_index([("user_id", ASCENDING)], unique=True)
    await db[SPECIES_COLLECTION].create_index([("id", ASCENDING)], unique=True)


async def close_mongo_connection():
    if db_connection.client is None:
        return
    log.info("Closing MongoDB connection...")
    db_connection.client.close()
    db_connection.client = None
    db_connection.db = None
    log.info("MongoDB connection closed.")


def get_database() -> AsyncIOMotorDatabase:
    if db_connection.db is None:
        log.error("Database not initialized. Call connect_to_mongo first.")
        raise RuntimeError("Database not initialized.")
    return db_connection.db
