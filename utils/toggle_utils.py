"""Add-or-remove an actor in a set field together with its counter.

A toggle is done as conditional single-document updates so that set
membership and the counter always move together, even with concurrent
requests for the same product and actor:

1. add the actor where it is not yet a member, bumping the counter;
2. otherwise remove it where it is a member, lowering the counter.

If neither update matches, the document is either gone or another request
changed the membership in between; the first is a NotFound, the second is
retried a bounded number of times.
"""
import logging

from bson import ObjectId
from pymongo import ReturnDocument

import config
from errors import NotFound, StoreError

logger = logging.getLogger("prodvent.toggle")


async def toggle_membership(collection, object_id: ObjectId, set_field: str, count_field: str, actor: str):
    """Toggle ``actor`` in ``set_field`` and return the updated document"""
    for attempt in range(1, config.TOGGLE_MAX_ATTEMPTS + 1):
        doc = await collection.find_one_and_update(
            {"_id": object_id, set_field: {"$ne": actor}},
            {"$addToSet": {set_field: actor}, "$inc": {count_field: 1}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is not None:
            logger.debug("Added %s to %s.%s", actor, object_id, set_field)
            return doc

        doc = await collection.find_one_and_update(
            {"_id": object_id, set_field: actor},
            {"$pull": {set_field: actor}, "$inc": {count_field: -1}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is not None:
            logger.debug("Removed %s from %s.%s", actor, object_id, set_field)
            return doc

        if await collection.find_one({"_id": object_id}, {"_id": 1}) is None:
            raise NotFound("Product not found")
        logger.warning(
            "Toggle of %s on %s.%s lost a race (attempt %d)", actor, object_id, set_field, attempt
        )

    raise StoreError(f"Could not update {set_field}, please retry")
