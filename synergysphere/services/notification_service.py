import logging
from typing import Optional

import settings
from synergysphere import realtime
from synergysphere.models.notification import Notification, default_data, default_channels
from synergysphere.models.user import User
from synergysphere.repository import Repository, Collection
from synergysphere.schemas import NotificationListQuery
from synergysphere.util.common import ensure_object_id, utc_now
from synergysphere.util.exceptions import DocumentNotFoundException

logger = logging.getLogger(__name__)

db = Repository.get_instance(**settings.MONGO_CONN)


def create_notification(recipient_id, type_: str, title: str, message: str, sender_id=None,
                        project_id=None, task_id=None, message_id=None, metadata: Optional[dict] = None,
                        priority: str = 'medium', action_url: str = None, action_text: str = None,
                        expires_at=None) -> Notification:
    """
    Stores a notification and pushes it to the recipient's room.
    Email and push channels are only enabled when the recipient's preferences allow them.
    :raises DocumentNotFoundException: if the recipient does not exist
    """
    recipient = db.find_one(Collection.USER, User, id=recipient_id)
    if recipient is None:
        raise DocumentNotFoundException('Recipient', recipient_id)

    data = default_data()
    data.update(projectId=project_id, taskId=task_id, messageId=message_id, metadata=metadata or {})
    channels = default_channels()
    channels['email'] = recipient.wants_notification('email')
    channels['push'] = recipient.wants_notification('push')

    notification = Notification(_id=None,
                                recipientId=recipient.id,
                                senderId=sender_id,
                                type=type_,
                                title=title[:200],
                                message=message[:1000],
                                data=data,
                                priority=priority,
                                actionUrl=action_url,
                                actionText=action_text,
                                channels=channels,
                                expiresAt=expires_at or utc_now() + settings.NOTIFICATION_TTL)
    created = db.insert(Collection.NOTIFICATION, notification, return_type=Notification)
    realtime.emit_to_user(recipient.id, 'notification', created.as_api_dict())
    return created


def notify_many(recipient_ids, exclude_id=None, **kwargs) -> list:
    """
    Sends the same notification to each distinct recipient, skipping `exclude_id` (usually the actor).
    """
    seen = set()
    created = []
    for recipient_id in recipient_ids:
        key = str(recipient_id)
        if recipient_id is None or key in seen or key == str(exclude_id):
            continue
        seen.add(key)
        created.append(create_notification(recipient_id, **kwargs))
    return created


def _active_query(user_id) -> dict:
    return {
        'recipientId': user_id,
        '$or': [{'expiresAt': None}, {'expiresAt': {'$gt': utc_now()}}],
    }


def list_notifications(user: User, query: NotificationListQuery):
    q = _active_query(user.id)
    if query.isRead is not None:
        q['isRead'] = query.isRead
    if query.type:
        q['type'] = query.type
    if query.priority:
        q['priority'] = query.priority

    total = db.count(Collection.NOTIFICATION, **q)
    items = db.find(Collection.NOTIFICATION, Notification,
                    sort=[('createdAt', -1), ('_id', -1)],
                    skip=(query.page - 1) * query.limit,
                    limit=query.limit,
                    **q)
    return items, total


def unread_count(user: User, project_id=None) -> int:
    q = _active_query(user.id)
    q['isRead'] = False
    if project_id is not None:
        q['data.projectId'] = ensure_object_id(project_id)
    return db.count(Collection.NOTIFICATION, **q)


def get_notification(user: User, notification_id) -> Notification:
    notification = db.find_one(Collection.NOTIFICATION, Notification, id=notification_id, recipientId=user.id)
    if notification is None:
        raise DocumentNotFoundException('Notification', notification_id)
    return notification


def read_notification(user: User, notification_id) -> Notification:
    notification = get_notification(user, notification_id)
    if not notification.isRead:
        _set_read(notification, True)
    return notification


def mark_read(user: User, notification_id) -> Notification:
    notification = read_notification(user, notification_id)
    realtime.emit_to_user(user.id, 'notification_read', {'notificationId': notification.id})
    return notification


def mark_unread(user: User, notification_id) -> Notification:
    notification = get_notification(user, notification_id)
    if notification.isRead:
        _set_read(notification, False)
    return notification


def mark_all_read(user: User, project_id=None) -> int:
    q = {'recipientId': user.id, 'isRead': False}
    if project_id is not None:
        q['data.projectId'] = ensure_object_id(project_id)
    now = utc_now()
    return db.update_many(Collection.NOTIFICATION, q, {'$set': {'isRead': True, 'readAt': now, 'updatedAt': now}})


def delete_notification(user: User, notification_id) -> None:
    if not db.delete(Collection.NOTIFICATION, id=notification_id, recipientId=user.id):
        raise DocumentNotFoundException('Notification', notification_id)


def delete_for_project(project_id) -> int:
    return db.delete_many(Collection.NOTIFICATION, **{'data.projectId': project_id})


def cleanup_expired() -> int:
    deleted = db.delete_many(Collection.NOTIFICATION, expiresAt={'$lt': utc_now()})
    logger.info('Removed %d expired notifications', deleted)
    return deleted


def _set_read(notification: Notification, read: bool) -> None:
    now = utc_now()
    notification.isRead = read
    notification.readAt = now if read else None
    notification.updatedAt = now
    db.update_one(Collection.NOTIFICATION, notification.id, {'$set': {
        'isRead': notification.isRead,
        'readAt': notification.readAt,
        'updatedAt': now,
    }})
