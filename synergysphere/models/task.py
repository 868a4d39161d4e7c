import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from bson.objectid import ObjectId

from synergysphere.models.mongo_document_base import MongoDocumentBase, SimpleMongoDocumentBase
from synergysphere.util.common import same_id, utc_now

STATUSES = ('todo', 'in-progress', 'in-review', 'completed', 'cancelled')
CLOSED_STATUSES = ('completed', 'cancelled')
PRIORITIES = ('low', 'medium', 'high', 'urgent')
DEPENDENCY_TYPES = ('blocks', 'blocked-by', 'relates-to')
ACTIVITY_TYPES = ('created', 'updated', 'assigned', 'status_changed', 'comment_added', 'due_date_changed')


@dataclass
class Task(MongoDocumentBase):
    """
    A unit of work inside a project.
    Subtasks, comments, dependencies and activity are embedded lists of plain dicts,
    built from the small dataclasses below.
    """
    title: str
    projectId: ObjectId
    creatorId: ObjectId
    description: Optional[str] = None
    assigneeId: Optional[ObjectId] = None
    status: str = 'todo'
    priority: str = 'medium'
    tags: list = field(default_factory=list)
    dueDate: Optional[datetime] = None
    startDate: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    estimatedHours: Optional[float] = None
    actualHours: Optional[float] = None
    progress: int = 0
    dependencies: list = field(default_factory=list)  # TaskDependency
    subtasks: list = field(default_factory=list)  # Subtask
    comments: list = field(default_factory=list)  # Comment
    watchers: list = field(default_factory=list)
    activity: list = field(default_factory=list)  # Activity
    isArchived: bool = False
    position: int = 0
    createdAt: datetime = field(default_factory=utc_now)
    updatedAt: datetime = field(default_factory=utc_now)

    @property
    def is_overdue(self) -> bool:
        return self.dueDate is not None and self.status != 'completed' and utc_now() > self.dueDate

    @property
    def days_until_due(self) -> Optional[int]:
        if self.dueDate is None:
            return None
        return math.ceil((self.dueDate - utc_now()).total_seconds() / 86400)

    @property
    def subtask_progress(self) -> int:
        if not self.subtasks:
            return self.progress
        done = len([s for s in self.subtasks if s.get('completed')])
        return int(math.floor(done * 100 / len(self.subtasks) + 0.5))

    def is_watched_by(self, user_id) -> bool:
        return any(same_id(w, user_id) for w in self.watchers)

    def set_status(self, status: str) -> None:
        self.status = status
        if status == 'completed':
            if self.completedAt is None:
                self.completedAt = utc_now()
        else:
            self.completedAt = None

    def add_activity(self, type_: str, user_id, description: str, old_value=None, new_value=None) -> None:
        self.activity.append(Activity(type=type_, userId=user_id, description=description,
                                      oldValue=old_value, newValue=new_value).as_dict())

    def as_api_dict(self) -> dict:
        d = self.as_dict()
        d['isOverdue'] = self.is_overdue
        d['daysUntilDue'] = self.days_until_due
        d['subtaskProgress'] = self.subtask_progress
        return d


@dataclass
class Subtask(SimpleMongoDocumentBase):
    title: str
    _id: ObjectId = field(default_factory=ObjectId)
    completed: bool = False
    completedAt: Optional[datetime] = None
    createdAt: datetime = field(default_factory=utc_now)


@dataclass
class Comment(SimpleMongoDocumentBase):
    authorId: ObjectId
    content: str
    _id: ObjectId = field(default_factory=ObjectId)
    mentions: list = field(default_factory=list)
    createdAt: datetime = field(default_factory=utc_now)
    editedAt: Optional[datetime] = None


@dataclass
class TaskDependency(SimpleMongoDocumentBase):
    taskId: ObjectId
    type: str = 'blocks'


@dataclass
class Activity(SimpleMongoDocumentBase):
    type: str
    userId: ObjectId
    description: str
    oldValue: object = None
    newValue: object = None
    timestamp: datetime = field(default_factory=utc_now)
