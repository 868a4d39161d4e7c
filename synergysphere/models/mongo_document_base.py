from dataclasses import dataclass, asdict, fields
from typing import Optional
from bson.objectid import ObjectId

_OBJECT_ID_TYPES = (ObjectId, Optional[ObjectId])


# noinspection PyArgumentList
@dataclass
class SimpleMongoDocumentBase:
    """
    Represents a base mongo document.
    Provides conversion to and from dict.
    Ensures proper conversion between ObjectId and str as needed.
    """
    def as_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, dic: dict, ignore_unknown: bool = False):
        if ignore_unknown:
            known = {f.name for f in fields(cls)}
            dic = {k: v for k, v in dic.items() if k in known}
        return cls(**dic)

    def __post_init__(self):
        for field in fields(self):
            if field.type in _OBJECT_ID_TYPES:
                attr = getattr(self, field.name)
                if attr is not None and isinstance(attr, str):
                    setattr(self, field.name, ObjectId(attr))


@dataclass
class MongoDocumentBase(SimpleMongoDocumentBase):
    """
    Represents a base mongo document with an _id property.
    """
    _id: Optional[ObjectId]

    @property
    def id(self):
        return self._id
