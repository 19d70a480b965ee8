from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi.encoders import jsonable_encoder


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id from a path or body; None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    if value is None:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def jsonable(value: Any) -> Any:
    return jsonable_encoder(value, custom_encoder={ObjectId: str})


def owner_summary(user: Optional[dict]) -> dict:
    if not user:
        return {}
    return {key: user[key] for key in ("_id", "name", "avatar") if key in user}


def place_summary(place: Optional[dict]) -> dict:
    if not place:
        return {}
    return {key: place[key] for key in ("_id", "name", "category", "address") if key in place}
