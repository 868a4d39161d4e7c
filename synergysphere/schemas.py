"""
Request payload schemas.

Each model validates the JSON body (or query string) of one endpoint. Document shapes live in
synergysphere.models; these only describe what clients may send.
"""
import re
from datetime import datetime
from typing import Annotated, List, Literal, Optional

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, EmailStr, Field, field_validator, model_validator

from synergysphere.models.notification import TYPES as NOTIFICATION_TYPES
from synergysphere.util.common import to_naive_utc

PASSWORD_PATTERN = re.compile(r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)')
COLOR_PATTERN = r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$'


def _check_password(value: str) -> str:
    if len(value) < 6:
        raise ValueError('Password must be at least 6 characters long')
    if not PASSWORD_PATTERN.match(value):
        raise ValueError('Password must contain at least one lowercase letter, one uppercase letter, and one number')
    return value


def _check_object_id(value: str) -> str:
    if not ObjectId.is_valid(value):
        raise ValueError('Invalid id')
    return value


def _lower(value: str) -> str:
    return value.lower()


Password = Annotated[str, AfterValidator(_check_password)]
IdString = Annotated[str, AfterValidator(_check_object_id)]
Email = Annotated[EmailStr, AfterValidator(_lower)]
UtcDatetime = Annotated[datetime, AfterValidator(to_naive_utc)]

TaskStatus = Literal['todo', 'in-progress', 'in-review', 'completed', 'cancelled']
Priority = Literal['low', 'medium', 'high', 'urgent']
ProjectStatus = Literal['planning', 'active', 'on-hold', 'completed', 'archived']
MemberRole = Literal['admin', 'member', 'viewer']


class Payload(BaseModel):
    model_config = {'str_strip_whitespace': True}

    def values(self, exclude_unset=True) -> dict:
        return self.model_dump(exclude_unset=exclude_unset)


# Auth

class RegisterRequest(Payload):
    name: str = Field(..., min_length=2, max_length=50)
    email: Email
    password: Password
    confirmPassword: str

    @model_validator(mode='after')
    def passwords_match(self):
        if self.confirmPassword != self.password:
            raise ValueError('Password confirmation does not match password')
        return self


class LoginRequest(Payload):
    email: Email
    password: str = Field(..., min_length=1)
    rememberMe: bool = False


class RefreshRequest(Payload):
    refreshToken: str = Field(..., min_length=1)


class ForgotPasswordRequest(Payload):
    email: Email


class ResetPasswordRequest(Payload):
    password: Password
    confirmPassword: str

    @model_validator(mode='after')
    def passwords_match(self):
        if self.confirmPassword != self.password:
            raise ValueError('Password confirmation does not match password')
        return self


class ChangePasswordRequest(Payload):
    currentPassword: str = Field(..., min_length=1)
    newPassword: Password
    confirmPassword: str

    @model_validator(mode='after')
    def passwords_match(self):
        if self.confirmPassword != self.newPassword:
            raise ValueError('Password confirmation does not match new password')
        return self


class VerifyEmailRequest(Payload):
    token: str = Field(..., min_length=1)


# Users

class NotificationPreferences(Payload):
    email: Optional[bool] = None
    push: Optional[bool] = None


class UpdateProfileRequest(Payload):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    avatar: Optional[str] = None
    notifications: Optional[NotificationPreferences] = None


class UserSearchQuery(Payload):
    q: str = Field(..., min_length=2)
    limit: int = Field(10, ge=1, le=50)


class PageQuery(Payload):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


# Projects

class Flags(Payload):
    """
    A partial set of boolean switches. Unknown keys are rejected and unset keys keep their stored value.
    """
    model_config = {'extra': 'forbid'}

    def values(self, exclude_unset=True) -> dict:
        return {k: v for k, v in super().values(exclude_unset).items() if v is not None}


class PermissionOverrides(Flags):
    canCreateTasks: Optional[bool] = None
    canEditTasks: Optional[bool] = None
    canDeleteTasks: Optional[bool] = None
    canManageMembers: Optional[bool] = None
    canEditProject: Optional[bool] = None


class ProjectNotificationSettings(Flags):
    taskUpdates: Optional[bool] = None
    memberChanges: Optional[bool] = None
    deadlines: Optional[bool] = None


class ProjectSettings(Flags):
    isPublic: Optional[bool] = None
    allowGuestAccess: Optional[bool] = None
    notifications: Optional[ProjectNotificationSettings] = None

    def values(self, exclude_unset=True) -> dict:
        values = super().values(exclude_unset)
        if self.notifications is not None:
            values['notifications'] = self.notifications.values()
        return values


class ProjectCreate(Payload):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    status: ProjectStatus = 'planning'
    priority: Priority = 'medium'
    startDate: Optional[UtcDatetime] = None
    dueDate: Optional[UtcDatetime] = None
    tags: List[str] = Field(default_factory=list)
    color: str = Field('#3B82F6', pattern=COLOR_PATTERN)


class ProjectUpdate(Payload):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    status: Optional[ProjectStatus] = None
    priority: Optional[Priority] = None
    startDate: Optional[UtcDatetime] = None
    dueDate: Optional[UtcDatetime] = None
    tags: Optional[List[str]] = None
    color: Optional[str] = Field(None, pattern=COLOR_PATTERN)
    settings: Optional[ProjectSettings] = None


class ProjectListQuery(PageQuery):
    status: Optional[ProjectStatus] = None
    search: Optional[str] = Field(None, min_length=2)


class AddMemberRequest(Payload):
    userId: Optional[IdString] = None
    email: Optional[Email] = None
    role: MemberRole = 'member'
    permissions: Optional[PermissionOverrides] = None

    @model_validator(mode='after')
    def user_reference(self):
        if self.userId is None and self.email is None:
            raise ValueError('Either userId or email is required')
        return self


class UpdateMemberRoleRequest(Payload):
    role: Literal['owner', 'admin', 'member', 'viewer']


# Tasks

class TaskCreate(Payload):
    title: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    project: Optional[IdString] = None
    assignee: Optional[IdString] = None
    dueDate: Optional[UtcDatetime] = None
    startDate: Optional[UtcDatetime] = None
    priority: Priority = 'medium'
    estimatedHours: Optional[float] = Field(None, ge=0)
    tags: List[Annotated[str, Field(max_length=50)]] = Field(default_factory=list)


class TaskUpdate(Payload):
    title: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    assignee: Optional[IdString] = None
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None
    dueDate: Optional[UtcDatetime] = None
    startDate: Optional[UtcDatetime] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    estimatedHours: Optional[float] = Field(None, ge=0)
    actualHours: Optional[float] = Field(None, ge=0)
    tags: Optional[List[Annotated[str, Field(max_length=50)]]] = None
    position: Optional[int] = None
    isArchived: Optional[bool] = None


class TaskListQuery(PageQuery):
    project: Optional[IdString] = None
    assignee: Optional[IdString] = None
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None
    overdue: Optional[bool] = None
    dueDateFrom: Optional[UtcDatetime] = None
    dueDateTo: Optional[UtcDatetime] = None
    search: Optional[str] = Field(None, min_length=2)
    sortBy: Literal['title', 'createdAt', 'updatedAt', 'dueDate', 'priority', 'status'] = 'createdAt'
    sortOrder: Literal['asc', 'desc'] = 'desc'


class StatusUpdate(Payload):
    status: TaskStatus


class CommentCreate(Payload):
    content: str = Field(..., min_length=1, max_length=1000)
    mentions: List[IdString] = Field(default_factory=list)


class SubtaskCreate(Payload):
    title: str = Field(..., min_length=2, max_length=200)


class DependencyCreate(Payload):
    taskId: IdString
    type: Literal['blocks', 'blocked-by', 'relates-to'] = 'blocks'


# Messages

class MessageCreate(Payload):
    content: str = Field(..., min_length=1, max_length=5000)
    mentions: List[IdString] = Field(default_factory=list)
    parentMessage: Optional[IdString] = None


class MessageEdit(Payload):
    content: str = Field(..., min_length=1, max_length=5000)


class ReactionRequest(Payload):
    emoji: str = Field(..., min_length=1, max_length=10)
    action: Literal['add', 'remove']


class MessageListQuery(Payload):
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1, le=100)
    # omitted or empty selects top-level messages only
    parentMessage: Optional[str] = None
    search: Optional[str] = Field(None, min_length=2)
    pinned: Optional[bool] = None

    @field_validator('parentMessage')
    @classmethod
    def parent_id(cls, value):
        if value:
            _check_object_id(value)
        return value


class RepliesQuery(Payload):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=50)


class MessageSearchQuery(Payload):
    q: str = Field(..., min_length=2)
    project: Optional[IdString] = None
    author: Optional[IdString] = None
    dateFrom: Optional[UtcDatetime] = None
    dateTo: Optional[UtcDatetime] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=50)


# Notifications

class NotificationListQuery(Payload):
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1, le=100)
    isRead: Optional[bool] = None
    type: Optional[str] = None
    priority: Optional[Priority] = None

    @field_validator('type')
    @classmethod
    def known_type(cls, value):
        if value is not None and value not in NOTIFICATION_TYPES:
            raise ValueError('Invalid notification type')
        return value
