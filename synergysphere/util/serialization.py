import json
from datetime import date, datetime

from bson import ObjectId
from flask.json.provider import DefaultJSONProvider


def json_default(o):
    if isinstance(o, ObjectId):
        return str(o)
    if isinstance(o, datetime):
        # stored values are naive UTC
        return o.isoformat() + ('Z' if o.tzinfo is None else '')
    if isinstance(o, date):
        return o.isoformat()
    return str(o)


def to_json_safe(data):
    """
    Round-trips data through json so ObjectIds and datetimes become strings.
    Used for payloads pushed over the socket.
    """
    return json.loads(json.dumps(data, default=json_default))


class MongoJSONProvider(DefaultJSONProvider):
    sort_keys = False

    @staticmethod
    def default(o):
        return json_default(o)
