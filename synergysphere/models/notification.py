from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from bson.objectid import ObjectId

from synergysphere.models.mongo_document_base import MongoDocumentBase
from synergysphere.util.common import utc_now

TYPES = (
    'task_assigned',
    'task_created',
    'task_updated',
    'task_completed',
    'task_due_soon',
    'task_overdue',
    'task_comment',
    'project_invitation',
    'project_updated',
    'member_added',
    'member_removed',
    'message_mention',
    'deadline_reminder',
    'system_announcement',
)
PRIORITIES = ('low', 'medium', 'high', 'urgent')


def default_data() -> dict:
    return {'projectId': None, 'taskId': None, 'messageId': None, 'metadata': {}}


def default_channels() -> dict:
    return {'inApp': True, 'email': False, 'push': False}


@dataclass
class Notification(MongoDocumentBase):
    recipientId: ObjectId
    type: str
    title: str
    message: str
    senderId: Optional[ObjectId] = None
    data: dict = field(default_factory=default_data)
    isRead: bool = False
    readAt: Optional[datetime] = None
    priority: str = 'medium'
    actionUrl: Optional[str] = None
    actionText: Optional[str] = None
    expiresAt: Optional[datetime] = None
    channels: dict = field(default_factory=default_channels)
    createdAt: datetime = field(default_factory=utc_now)
    updatedAt: datetime = field(default_factory=utc_now)

    @property
    def is_expired(self) -> bool:
        return self.expiresAt is not None and utc_now() > self.expiresAt

    def time_ago(self) -> str:
        minutes = int((utc_now() - self.createdAt).total_seconds() // 60)
        if minutes < 1:
            return 'just now'
        if minutes < 60:
            return f'{minutes}m ago'
        if minutes < 60 * 24:
            return f'{minutes // 60}h ago'
        if minutes < 60 * 24 * 7:
            return f'{minutes // (60 * 24)}d ago'
        return self.createdAt.date().isoformat()

    def as_api_dict(self) -> dict:
        d = self.as_dict()
        d['timeAgo'] = self.time_ago()
        return d
