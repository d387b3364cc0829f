from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId

from errors import NotFound


def parse_object_id(value: str, kind: str = "Document") -> ObjectId:
    """Turn a path id into an ObjectId; malformed ids are treated as missing"""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFound(f"{kind} not found")


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Copy a Mongo document with ``_id`` as a string so it can be sent as JSON"""
    if doc is None:
        return None
    data = dict(doc)
    if isinstance(data.get("_id"), ObjectId):
        data["_id"] = str(data["_id"])
    return data


def serialize_docs(docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [serialize_doc(doc) for doc in docs]
