from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# collection -> list of (keys, options)
INDEXES = {
    "users": [
        ([("email", ASCENDING)], {"unique": True}),
    ],
    "aircraft": [
        ([("registration", ASCENDING)], {"unique": True}),
        ([("fleet_group", ASCENDING), ("status", ASCENDING)], {}),
    ],
    "daily_status": [
        ([("aircraft_id", ASCENDING), ("date", DESCENDING)], {"unique": True}),
        ([("date", DESCENDING)], {}),
    ],
    "aog_events": [
        ([("aircraft_id", ASCENDING), ("detected_at", DESCENDING)], {}),
        ([("responsible_party", ASCENDING), ("detected_at", DESCENDING)], {}),
        ([("current_status", ASCENDING), ("detected_at", DESCENDING)], {}),
        ([("reported_at", DESCENDING)], {}),
    ],
    "maintenance_tasks": [
        ([("aircraft_id", ASCENDING), ("date", DESCENDING)], {}),
        ([("task_type", ASCENDING), ("date", DESCENDING)], {}),
    ],
    "work_orders": [
        ([("wo_number", ASCENDING)], {"unique": True}),
        ([("aircraft_id", ASCENDING), ("status", ASCENDING)], {}),
        ([("due_date", ASCENDING), ("status", ASCENDING)], {}),
    ],
    "discrepancies": [
        ([("ata_chapter", ASCENDING)], {}),
        ([("aircraft_id", ASCENDING), ("date_detected", DESCENDING)], {}),
    ],
    "budget_plans": [
        ([("fiscal_year", ASCENDING), ("clause_id", ASCENDING), ("aircraft_group", ASCENDING)], {"unique": True}),
    ],
    "actual_spend": [
        ([("period", ASCENDING), ("clause_id", ASCENDING)], {}),
        ([("aircraft_id", ASCENDING), ("period", ASCENDING)], {}),
    ],
    "import_logs": [
        ([("import_type", ASCENDING), ("created_at", DESCENDING)], {}),
    ],
}


class Database:
    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    async def connect(self, mongo_url: str, db_name: str):
        """Connect to MongoDB"""
        try:
            self.client = AsyncIOMotorClient(mongo_url)
            self.db = self.client[db_name]
            # Verify connection
            await self.client.admin.command('ping')
            logger.info(f"Connected to MongoDB database: {db_name}")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise
        await ensure_indexes(self.db)

    async def disconnect(self):
        """Disconnect from MongoDB"""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    def get_db(self) -> AsyncIOMotorDatabase:
        """Get database instance"""
        if self.db is None:
            raise RuntimeError("Database not connected")
        return self.db


async def ensure_indexes(database: AsyncIOMotorDatabase):
    """Create the indexes every collection relies on"""
    for collection, indexes in INDEXES.items():
        for keys, options in indexes:
            await database[collection].create_index(keys, **options)
    logger.info(f"Indexes ensured on {len(INDEXES)} collections")


db = Database()

async def get_database() -> AsyncIOMotorDatabase:
    return db.get_db()
