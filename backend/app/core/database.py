import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from app.core.config import settings

logger = logging.getLogger(__name__)

# Global MongoDB client
_client: AsyncIOMotorClient = None
_database: AsyncIOMotorDatabase = None


async def connect_to_mongo():
    """Connect to MongoDB."""
    global _client, _database
    _client = AsyncIOMotorClient(settings.MONGODB_URI)
    _database = _client[settings.MONGODB_DB_NAME]
    logger.info(f"Connected to MongoDB: {settings.MONGODB_DB_NAME}")


async def close_mongo_connection():
    """Close MongoDB connection."""
    global _client
    if _client:
        _client.close()
        logger.info("Closed MongoDB connection")


def get_database() -> AsyncIOMotorDatabase:
    """Get MongoDB database instance."""
    return _database


async def ensure_indexes(db: AsyncIOMotorDatabase):
    """Create the indexes the order and payment lookups rely on."""
    await db.orders.create_index([("order_id", ASCENDING)], unique=True)
    await db.orders.create_index([("buyer_id", ASCENDING)])
    await db.orders.create_index([("status", ASCENDING)])
    await db.orders.create_index([("payment_status", ASCENDING)])
    await db.orders.create_index([("razorpay_order_id", ASCENDING)])
    await db.orders.create_index([("razorpay_order_ids", ASCENDING)])
    await db.orders.create_index([("razorpay_payment_id", ASCENDING)])
    await db.orders.create_index([("items.seller_id", ASCENDING)])
    await db.orders.create_index([("created_at", DESCENDING)])
    await db.products.create_index([("status", ASCENDING), ("is_available", ASCENDING)])
    await db.refunds.create_index([("order_id", ASCENDING)])
    logger.info("MongoDB indexes ensured")
