from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from synergysphere.models.mongo_document_base import MongoDocumentBase
from synergysphere.util.common import utc_now

PUBLIC_FIELDS = ('_id', 'name', 'email', 'avatar')

PRIVATE_FIELDS = ('password', 'emailVerificationToken', 'resetPasswordToken', 'resetPasswordExpire')


def default_preferences() -> dict:
    return {'notifications': {'email': True, 'push': False}}


@dataclass
class User(MongoDocumentBase):
    name: str
    email: str
    password: str
    avatar: Optional[str] = None
    role: str = 'user'
    isActive: bool = True
    emailVerified: bool = False
    emailVerifiedAt: Optional[datetime] = None
    emailVerificationToken: Optional[str] = None
    resetPasswordToken: Optional[str] = None
    resetPasswordExpire: Optional[datetime] = None
    lastLogin: Optional[datetime] = None
    preferences: dict = field(default_factory=default_preferences)
    createdAt: datetime = field(default_factory=utc_now)
    updatedAt: datetime = field(default_factory=utc_now)

    def as_public_dict(self) -> dict:
        """
        The user as returned by the API, without password and token fields.
        """
        d = self.as_dict()
        for key in PRIVATE_FIELDS:
            d.pop(key, None)
        return d

    def as_summary(self) -> dict:
        return {key: getattr(self, key) for key in PUBLIC_FIELDS}

    def wants_notification(self, channel: str) -> bool:
        return bool(self.preferences.get('notifications', {}).get(channel, False))
