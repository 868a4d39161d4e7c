import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from bson.objectid import ObjectId

from synergysphere.models.mongo_document_base import MongoDocumentBase, SimpleMongoDocumentBase
from synergysphere.util.common import same_id, utc_now

ROLES = ('owner', 'admin', 'member', 'viewer')
STATUSES = ('planning', 'active', 'on-hold', 'completed', 'archived')
PRIORITIES = ('low', 'medium', 'high', 'urgent')

PERMISSIONS = ('canCreateTasks', 'canEditTasks', 'canDeleteTasks', 'canManageMembers', 'canEditProject')


def role_permissions(role: str) -> dict:
    """
    Default permission bag for a member role.
    """
    privileged = role in ('owner', 'admin')
    return {
        'canCreateTasks': role != 'viewer',
        'canEditTasks': role != 'viewer',
        'canDeleteTasks': privileged,
        'canManageMembers': privileged,
        'canEditProject': privileged,
    }


def default_settings() -> dict:
    return {
        'isPublic': False,
        'allowGuestAccess': False,
        'notifications': {'taskUpdates': True, 'memberChanges': True, 'deadlines': True},
    }


def merged_settings(current: dict, changes: dict) -> dict:
    merged = default_settings()
    merged.update({k: v for k, v in current.items() if k != 'notifications'})
    merged['notifications'].update(current.get('notifications') or {})
    merged.update({k: v for k, v in changes.items() if k != 'notifications'})
    merged['notifications'].update(changes.get('notifications') or {})
    return merged


def default_progress() -> dict:
    return {'totalTasks': 0, 'completedTasks': 0, 'percentage': 0}


def default_statistics() -> dict:
    return {'totalMessages': 0, 'lastActivity': utc_now()}


def progress_percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    # round half up
    return int(math.floor(completed * 100 / total + 0.5))


@dataclass
class Project(MongoDocumentBase):
    name: str
    ownerId: ObjectId
    description: Optional[str] = None
    members: list = field(default_factory=list)  # ProjectMember
    status: str = 'planning'
    priority: str = 'medium'
    startDate: Optional[datetime] = None
    dueDate: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    tags: list = field(default_factory=list)
    color: str = '#3B82F6'
    settings: dict = field(default_factory=default_settings)
    progress: dict = field(default_factory=default_progress)
    statistics: dict = field(default_factory=default_statistics)
    createdAt: datetime = field(default_factory=utc_now)
    updatedAt: datetime = field(default_factory=utc_now)

    def is_owner(self, user_id) -> bool:
        return same_id(self.ownerId, user_id)

    def get_member(self, user_id) -> Optional[dict]:
        return next((m for m in self.members if same_id(m['userId'], user_id)), None)

    def is_member(self, user_id) -> bool:
        return self.is_owner(user_id) or self.get_member(user_id) is not None

    def member_role(self, user_id) -> Optional[str]:
        if self.is_owner(user_id):
            return 'owner'
        member = self.get_member(user_id)
        return member['role'] if member else None

    def has_permission(self, user_id, permission: str) -> bool:
        if self.is_owner(user_id):
            return True
        member = self.get_member(user_id)
        if member is None:
            return False
        return member.get('permissions', {}).get(permission) is True

    def member_ids(self) -> list:
        """
        Every user with access to the project, owner first.
        """
        ids = [self.ownerId]
        ids.extend(m['userId'] for m in self.members if not same_id(m['userId'], self.ownerId))
        return ids


@dataclass
class ProjectMember(SimpleMongoDocumentBase):
    userId: ObjectId
    role: str = 'member'
    permissions: dict = field(default_factory=dict)
    joinedAt: datetime = field(default_factory=utc_now)

    @classmethod
    def create(cls, user_id, role: str = 'member', permissions: Optional[dict] = None):
        perms = role_permissions(role)
        perms.update(permissions or {})
        return cls(userId=user_id, role=role, permissions=perms)
