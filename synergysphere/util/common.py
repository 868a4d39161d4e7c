from datetime import datetime, timezone
from typing import Union

from bson import ObjectId
from bson.errors import InvalidId

MongoId = Union[ObjectId, str]


def ensure_object_id(data) -> ObjectId:
    _id = data
    if type(data) == str:
        _id = ObjectId(data)
    if type(_id) is not ObjectId:
        raise InvalidId(f'{data!r} is not a valid ObjectId')
    return _id


def same_id(a, b) -> bool:
    if a is None or b is None:
        return False
    return str(a) == str(b)


def utc_now() -> datetime:
    """
    Current time as naive UTC, which is what pymongo hands back by default.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime):
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
