######################
# Database Connection
######################
import logging

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING

import config

logger = logging.getLogger("prodvent.database")

client = AsyncIOMotorClient(config.MONGODB_URL)
db = client[config.DATABASE_NAME]


async def ping(database) -> bool:
    """Return True if the deployment answers a ping"""
    await database.command("ping")
    logger.info("Pinged deployment, connected to MongoDB database '%s'", database.name)
    return True


async def ensure_indexes(database):
    """Create the indexes the API relies on for uniqueness and ordering"""
    # Unique constraints
    await database.users.create_index("email", unique=True)
    await database.reviews.create_index(
        [("productId", ASCENDING), ("email", ASCENDING)], unique=True
    )

    # Sorting & query optimization
    await database.products.create_index([("timestamp", DESCENDING)])
    await database.products.create_index([("vote", DESCENDING)])
    await database.products.create_index([("userEmail", ASCENDING)])
    await database.coupons.create_index([("expiryDate", ASCENDING)])

    # Revoked tokens drop out once the token itself would have expired
    await database.revoked_tokens.create_index("expiresAt", expireAfterSeconds=0)
    await database.revoked_tokens.create_index("jti", unique=True)
    logger.debug("Indexes ensured on database '%s'", database.name)
