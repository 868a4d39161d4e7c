from dataclasses import dataclass, field
from datetime import datetime

from bson import ObjectId

from synergysphere.models.mongo_document_base import MongoDocumentBase
from synergysphere.util.common import utc_now


@dataclass
class Session(MongoDocumentBase):
    token: str
    userId: ObjectId
    expiresAt: datetime
    kind: str = 'access'  # access | refresh
    createdAt: datetime = field(default_factory=utc_now)

    @property
    def expired(self) -> bool:
        return self.expiresAt < utc_now()
