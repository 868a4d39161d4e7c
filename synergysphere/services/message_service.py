import logging
import re
from typing import Tuple

import settings
from synergysphere import realtime
from synergysphere.models.message import Message, ReadReceipt
from synergysphere.models.project import Project
from synergysphere.models.user import User
from synergysphere.repository import Repository, Collection
from synergysphere.schemas import MessageCreate, MessageListQuery, MessageSearchQuery
from synergysphere.services import notification_service, project_service, user_service
from synergysphere.util.common import MongoId, ensure_object_id, same_id, utc_now
from synergysphere.util.exceptions import DocumentNotFoundException, PermissionDeniedException, ValidationException

logger = logging.getLogger(__name__)

db = Repository.get_instance(**settings.MONGO_CONN)


def load_message(message_id: MongoId) -> Tuple[Message, Project]:
    rows = db.join(Collection.MESSAGE, 'projectId', Collection.PROJECT, '_id', 'project', unwind=True, id=message_id)
    if not rows:
        raise DocumentNotFoundException('Message', message_id)
    row = rows[0]
    project = Project.from_dict(row.pop('project'), True)
    return Message.from_dict(row, True), project


def load_message_for_member(message_id, user: User) -> Tuple[Message, Project]:
    message, project = load_message(message_id)
    project_service.require_member(project, user)
    return message, project


def as_api_list(messages: list) -> list:
    lookup = user_service.summaries(m.authorId for m in messages)
    return [user_service.populate(m.as_api_dict(), lookup, author='authorId') for m in messages]


def as_api(message: Message) -> dict:
    return as_api_list([message])[0]


def _unread_query(user_id) -> dict:
    return {'readBy.userId': {'$ne': user_id}}


def mark_read(user: User, message_ids) -> int:
    if not message_ids:
        return 0
    query = _unread_query(user.id)
    query['_id'] = {'$in': list(message_ids)}
    return db.update_many(Collection.MESSAGE, query, {'$push': {'readBy': ReadReceipt(userId=user.id).as_dict()}})


def list_messages(user: User, project_id, query: MessageListQuery):
    """
    Project messages, pinned first then newest. Everything returned is marked read by the caller.
    """
    project = project_service.get_project_for_member(project_id, user)
    q = {'projectId': project.id}
    if query.parentMessage:
        q['parentMessageId'] = ensure_object_id(query.parentMessage)
    else:
        q['parentMessageId'] = None
    if query.pinned is not None:
        q['isPinned'] = query.pinned
    if query.search:
        q['content'] = {'$regex': re.escape(query.search), '$options': 'i'}
        q['isDeleted'] = False

    total = db.count(Collection.MESSAGE, **q)
    messages = db.find(Collection.MESSAGE, Message,
                       sort=[('isPinned', -1), ('createdAt', -1), ('_id', -1)],
                       skip=(query.page - 1) * query.limit,
                       limit=query.limit,
                       **q)
    mark_read(user, [m.id for m in messages])
    return messages, total


def send_message(user: User, project_id, payload: MessageCreate) -> Message:
    project = project_service.get_project_for_member(project_id, user)

    parent_id = None
    if payload.parentMessage:
        parent = db.find_one(Collection.MESSAGE, Message, id=payload.parentMessage, projectId=project.id)
        if parent is None:
            raise DocumentNotFoundException('Parent message', payload.parentMessage)
        parent_id = parent.id

    mentions = [ensure_object_id(m) for m in payload.mentions]
    if any(not project.is_member(m) for m in mentions):
        raise ValidationException('Mentioned users must be members of the project')

    message = Message(_id=None,
                      content=payload.content,
                      projectId=project.id,
                      authorId=user.id,
                      parentMessageId=parent_id,
                      mentions=mentions,
                      readBy=[ReadReceipt(userId=user.id).as_dict()])
    message = db.insert(Collection.MESSAGE, message, return_type=Message)
    project_service.touch(project.id, messages=1)

    body = as_api(message)
    realtime.emit_to_project(project.id, 'new_message', {'message': body, 'projectId': project.id})
    for mentioned in mentions:
        if same_id(mentioned, user.id):
            continue
        notification_service.create_notification(
            mentioned, 'message_mention',
            title=f'You were mentioned in {project.name}',
            message=f'{user.name}: {payload.content[:100]}',
            sender_id=user.id, project_id=project.id, message_id=message.id,
            action_url=f'/projects/{project.id}/messages', action_text='View Message')
        realtime.emit_to_user(mentioned, 'message_mention', {'message': body, 'projectId': project.id})
    return message


def get_message(user: User, message_id) -> dict:
    message, _ = load_message_for_member(message_id, user)
    mark_read(user, [message.id])
    replies = db.find(Collection.MESSAGE, Message, sort=[('createdAt', 1), ('_id', 1)], parentMessageId=message.id)
    d = as_api(message)
    d['replies'] = as_api_list(replies)
    d['replyCount'] = len(replies)
    return d


def _require_author_or_owner(message: Message, project: Project, user: User, action: str) -> None:
    if not same_id(message.authorId, user.id) and not project.is_owner(user.id):
        raise PermissionDeniedException(f'Not authorized to {action} this message')


def edit_message(user: User, message_id, content: str) -> Message:
    message, project = load_message(message_id)
    _require_author_or_owner(message, project, user, 'edit')
    if message.isDeleted:
        raise ValidationException('Cannot edit a deleted message')

    now = utc_now()
    message.editHistory.append({'content': message.content, 'editedAt': now})
    message.content = content
    message.isEdited = True
    message.editedAt = now
    message.updatedAt = now
    message = db.update(Collection.MESSAGE, message, Message)
    realtime.emit_to_project(project.id, 'message_edited', {'message': as_api(message), 'projectId': project.id})
    return message


def delete_message(user: User, message_id) -> None:
    message, project = load_message(message_id)
    _require_author_or_owner(message, project, user, 'delete')
    now = utc_now()
    db.update_one(Collection.MESSAGE, message.id, {'$set': {'isDeleted': True, 'deletedAt': now, 'updatedAt': now}})
    realtime.emit_to_project(project.id, 'message_deleted', {'messageId': message.id, 'projectId': project.id})


def react(user: User, message_id, emoji: str, action: str) -> list:
    message, project = load_message_for_member(message_id, user)
    if message.isDeleted:
        raise ValidationException('Cannot react to a deleted message')
    if action == 'add':
        message.add_reaction(emoji, user.id)
    else:
        message.remove_reaction(emoji, user.id)
    db.update_one(Collection.MESSAGE, message.id, {'$set': {'reactions': message.reactions}})
    realtime.emit_to_project(project.id, 'message_reaction', {
        'messageId': message.id, 'reactions': message.reactions, 'userId': user.id, 'emoji': emoji, 'action': action,
    })
    return message.reactions


def toggle_pin(user: User, message_id) -> Message:
    message, project = load_message(message_id)
    if project.member_role(user.id) not in ('owner', 'admin'):
        raise PermissionDeniedException('Only project owners and admins can pin messages')
    message.isPinned = not message.isPinned
    message.pinnedAt = utc_now() if message.isPinned else None
    message.pinnedById = user.id if message.isPinned else None
    db.update_one(Collection.MESSAGE, message.id, {'$set': {
        'isPinned': message.isPinned, 'pinnedAt': message.pinnedAt, 'pinnedById': message.pinnedById,
    }})
    realtime.emit_to_project(project.id, 'message_pin_toggled', {
        'messageId': message.id, 'isPinned': message.isPinned, 'projectId': project.id,
    })
    return message


def replies(user: User, message_id, page: int, limit: int):
    message, _ = load_message_for_member(message_id, user)
    total = db.count(Collection.MESSAGE, parentMessageId=message.id)
    items = db.find(Collection.MESSAGE, Message,
                    sort=[('createdAt', 1), ('_id', 1)],
                    skip=(page - 1) * limit,
                    limit=limit,
                    parentMessageId=message.id)
    return items, total


def unread_count(user: User, project_id=None) -> int:
    if project_id is not None:
        project_ids = [project_service.get_project_for_member(project_id, user).id]
    else:
        project_ids = project_service.project_ids_for(user.id)
    q = _unread_query(user.id)
    q.update(projectId={'$in': project_ids}, authorId={'$ne': user.id}, isDeleted=False)
    return db.count(Collection.MESSAGE, **q)


def mark_all_read(user: User, project_id) -> int:
    project = project_service.get_project_for_member(project_id, user)
    query = _unread_query(user.id)
    query['projectId'] = project.id
    return db.update_many(Collection.MESSAGE, query, {'$push': {'readBy': ReadReceipt(userId=user.id).as_dict()}})


def search_messages(user: User, query: MessageSearchQuery):
    """
    Case-insensitive content search across every project the caller belongs to.
    """
    if query.project:
        project_ids = [project_service.get_project_for_member(query.project, user).id]
    else:
        project_ids = project_service.project_ids_for(user.id)
    q = {
        'projectId': {'$in': project_ids},
        'isDeleted': False,
        'content': {'$regex': re.escape(query.q), '$options': 'i'},
    }
    if query.author:
        q['authorId'] = ensure_object_id(query.author)
    created = {}
    if query.dateFrom:
        created['$gte'] = query.dateFrom
    if query.dateTo:
        created['$lte'] = query.dateTo
    if created:
        q['createdAt'] = created

    total = db.count(Collection.MESSAGE, **q)
    items = db.find(Collection.MESSAGE, Message,
                    sort=[('createdAt', -1), ('_id', -1)],
                    skip=(query.page - 1) * query.limit,
                    limit=query.limit,
                    **q)
    return items, total
