from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from bson.objectid import ObjectId

from synergysphere.models.mongo_document_base import MongoDocumentBase, SimpleMongoDocumentBase
from synergysphere.util.common import same_id, utc_now

DELETED_PLACEHOLDER = '[Message deleted]'

SYSTEM_MESSAGE_TYPES = ('task_created', 'task_updated', 'member_added', 'member_removed', 'project_updated')


@dataclass
class Message(MongoDocumentBase):
    content: str
    projectId: ObjectId
    authorId: ObjectId
    parentMessageId: Optional[ObjectId] = None
    mentions: list = field(default_factory=list)
    reactions: list = field(default_factory=list)  # Reaction
    isEdited: bool = False
    editedAt: Optional[datetime] = None
    editHistory: list = field(default_factory=list)
    isDeleted: bool = False
    deletedAt: Optional[datetime] = None
    isSystemMessage: bool = False
    systemMessageType: Optional[str] = None
    readBy: list = field(default_factory=list)  # ReadReceipt
    isPinned: bool = False
    pinnedAt: Optional[datetime] = None
    pinnedById: Optional[ObjectId] = None
    createdAt: datetime = field(default_factory=utc_now)
    updatedAt: datetime = field(default_factory=utc_now)

    def is_read_by(self, user_id) -> bool:
        return any(same_id(r['userId'], user_id) for r in self.readBy)

    def get_reaction(self, emoji: str) -> Optional[dict]:
        return next((r for r in self.reactions if r['emoji'] == emoji), None)

    def add_reaction(self, emoji: str, user_id) -> None:
        reaction = self.get_reaction(emoji)
        if reaction is None:
            self.reactions.append(Reaction(emoji=emoji, users=[user_id], count=1).as_dict())
        elif not any(same_id(u, user_id) for u in reaction['users']):
            reaction['users'].append(user_id)
            reaction['count'] = len(reaction['users'])

    def remove_reaction(self, emoji: str, user_id) -> None:
        reaction = self.get_reaction(emoji)
        if reaction is None:
            return
        reaction['users'] = [u for u in reaction['users'] if not same_id(u, user_id)]
        reaction['count'] = len(reaction['users'])
        if reaction['count'] == 0:
            self.reactions = [r for r in self.reactions if r['emoji'] != emoji]

    def as_api_dict(self) -> dict:
        d = self.as_dict()
        if self.isDeleted:
            d['content'] = DELETED_PLACEHOLDER
            d['editHistory'] = []
        return d


@dataclass
class Reaction(SimpleMongoDocumentBase):
    emoji: str
    users: list = field(default_factory=list)
    count: int = 0


@dataclass
class ReadReceipt(SimpleMongoDocumentBase):
    userId: ObjectId
    readAt: datetime = field(default_factory=utc_now)
