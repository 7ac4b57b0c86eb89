"""
MongoDB async database connection using Motor.
Provides database instance and collection access.
"""

import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from typing import Optional
from .config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect(cls):
        """Connect to MongoDB."""
        # tz_aware keeps check-in timestamps comparable after a round trip
        cls.client = AsyncIOMotorClient(settings.MONGODB_URL, tz_aware=True)
        cls.db = cls.client[settings.DATABASE_NAME]

        # Verify connection
        await cls.client.admin.command('ping')
        logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)

        # Create indexes
        await cls._create_indexes()

    @classmethod
    async def disconnect(cls):
        """Disconnect from MongoDB."""
        if cls.client:
            cls.client.close()
            cls.client = None
            cls.db = None
            logger.info("Disconnected from MongoDB")

    @classmethod
    async def _create_indexes(cls):
        """Create database indexes for performance."""
        if cls.db is None:
            return

        # Check-ins: queue reads are always scoped to a clinic-day
        await cls.db.check_ins.create_index([("clinic_id", 1), ("clinic_day", 1), ("status", 1)])
        await cls.db.check_ins.create_index("patient_id")
        await cls.db.check_ins.create_index("check_in_time")

        # Clinics
        await cls.db.clinics.create_index("is_active")

        # Patients
        await cls.db.patients.create_index([("last_name", 1), ("first_name", 1)])
        await cls.db.patients.create_index("contact_info.phone")

        logger.info("Database indexes created")

    @classmethod
    def get_collection(cls, name: str):
        """Get a collection by name."""
        if cls.db is None:
            raise RuntimeError("Database not connected")
        return cls.db[name]

