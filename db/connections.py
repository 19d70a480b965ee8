import logging
from typing import Optional

import motor.motor_asyncio as motor
from pymongo import ASCENDING, DESCENDING, GEOSPHERE, TEXT

from core.config import settings

logger = logging.getLogger(__name__)


class ConnectionManager:
    _instance = None  # For singleton pattern

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConnectionManager, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize the database connection"""
        logger.info("   Connecting to MongoDB...")

        self.MONGO_URI = settings.mongo_uri
        self.DB_NAME = settings.mongo_db_name

        self.client: Optional[motor.AsyncIOMotorClient] = None
        self.db: Optional[motor.AsyncIOMotorDatabase] = None

        self._connect()

    def _connect(self):
        """Create the client; motor connects lazily on the first operation"""
        try:
            self.client = motor.AsyncIOMotorClient(
                self.MONGO_URI,
                serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
                tz_aware=True,
            )
            self.db = self.client[self.DB_NAME]
            logger.info("   MongoDB client ready for database %s", self.DB_NAME)
        except Exception as e:
            logger.error(f" Failed to connect to MongoDB: {e}")
            raise

    async def ensure_indexes(self):
        """Create the indexes the listing and review queries rely on"""
        db = self.get_db()
        await db["places"].create_index([("location", GEOSPHERE)])
        await db["places"].create_index(
            [("name", TEXT), ("description", TEXT), ("tags", TEXT)],
            name="places_text",
        )
        await db["places"].create_index([("category", ASCENDING), ("subcategory", ASCENDING)])
        await db["reviews"].create_index([("place", ASCENDING), ("user", ASCENDING)], unique=True)
        await db["reviews"].create_index([("place", ASCENDING), ("createdAt", DESCENDING)])
        await db["users"].create_index([("email", ASCENDING)], unique=True)
        logger.info("   MongoDB indexes ensured")

    async def close(self):
        """Close the database connection"""
        if self.client:
            self.client.close()
        logger.info("   MongoDB connection closed")

    def get_db(self):
        if self.db is None:
            raise RuntimeError("Database not initialized")
        return self.db
