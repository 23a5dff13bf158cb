from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from debt_ledger.core.config import settings
from debt_ledger.core.logging import get_logger

logger = get_logger(__name__)

class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    timeout_ms = int(settings.STORAGE_TIMEOUT_SECONDS * 1000)
    mongodb.client = AsyncIOMotorClient(
        settings.MONGODB_URL,
        serverSelectionTimeoutMS=timeout_ms,
        connectTimeoutMS=timeout_ms,
        socketTimeoutMS=timeout_ms,
        tz_aware=True,
    )
    mongodb.db = mongodb.client[settings.DATABASE_NAME]

    # Create indexes
    await create_indexes(mongodb.db)
    logger.info("mongo_connected", database=settings.DATABASE_NAME)

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    mongodb.client = None
    mongodb.db = None
    logger.info("mongo_disconnected")

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes."""
    # One account per person
    await db["debt_accounts"].create_index("person_id", unique=True)

    # Payment history per account, newest first
    await db["debt_payments"].create_index([("debt_account_id", 1), ("payment_date", -1)])

    # Expense aggregation by responsible party
    await db["expenses"].create_index("responsible_party_id")
    await db["expenses"].create_index([("created_at", -1)])

    # Registry lookups in both directions
    await db["person_mappings"].create_index("responsible_party_id", unique=True)
    await db["person_mappings"].create_index("person_id")

    # Order lookups for payout stats
    await db["orders"].create_index("order_number")

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
