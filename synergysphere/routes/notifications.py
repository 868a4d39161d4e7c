from flask import Blueprint, g, request

from synergysphere.schemas import NotificationListQuery
from synergysphere.services import notification_service
from synergysphere.util.auth import login_required
from synergysphere.util.http import success, parse_query, pagination

notifications = Blueprint('notifications', __name__, url_prefix='/notifications')


@notifications.get('')
@login_required
def list_notifications():
    query = parse_query(NotificationListQuery)
    items, total = notification_service.list_notifications(g.user, query)
    return success({
        'notifications': [n.as_api_dict() for n in items],
        'pagination': pagination(query.page, query.limit, total, 'Notifications'),
        'unreadCount': notification_service.unread_count(g.user),
    })


@notifications.get('/unread/count')
@notifications.get('/unread/count/<project_id>')
@login_required
def unread_count(project_id=None):
    return success({'unreadCount': notification_service.unread_count(g.user, project_id)})


@notifications.put('/read-all')
@login_required
def mark_all_read():
    count = notification_service.mark_all_read(g.user, request.args.get('project'))
    return success({'modifiedCount': count}, 'All notifications marked as read')


@notifications.get('/<notification_id>')
@login_required
def get_notification(notification_id):
    notification = notification_service.read_notification(g.user, notification_id)
    return success({'notification': notification.as_api_dict()})


@notifications.put('/<notification_id>/read')
@login_required
def mark_read(notification_id):
    notification = notification_service.mark_read(g.user, notification_id)
    return success({'notification': notification.as_api_dict()}, 'Notification marked as read')


@notifications.put('/<notification_id>/unread')
@login_required
def mark_unread(notification_id):
    notification = notification_service.mark_unread(g.user, notification_id)
    return success({'notification': notification.as_api_dict()}, 'Notification marked as unread')


@notifications.delete('/<notification_id>')
@login_required
def delete_notification(notification_id):
    notification_service.delete_notification(g.user, notification_id)
    return success(message='Notification deleted successfully')
