from flask import Blueprint, g, request

from synergysphere.schemas import (
    MessageCreate, MessageEdit, MessageListQuery, MessageSearchQuery, ReactionRequest, RepliesQuery,
)
from synergysphere.services import message_service
from synergysphere.util.auth import login_required
from synergysphere.util.http import success, parse_body, parse_query, pagination

messages = Blueprint('messages', __name__, url_prefix='/messages')


@messages.get('/project/<project_id>')
@login_required
def list_messages(project_id):
    query = parse_query(MessageListQuery)
    items, total = message_service.list_messages(g.user, project_id, query)
    return success({
        'messages': message_service.as_api_list(items),
        'pagination': pagination(query.page, query.limit, total, 'Messages'),
    })


@messages.post('/project/<project_id>')
@login_required
def send_message(project_id):
    message = message_service.send_message(g.user, project_id, parse_body(MessageCreate))
    return success({'message': message_service.as_api(message)}, 'Message sent successfully', 201)


@messages.put('/project/<project_id>/read-all')
@login_required
def mark_all_read(project_id):
    count = message_service.mark_all_read(g.user, project_id)
    return success({'modifiedCount': count}, 'All messages marked as read')


@messages.get('/unread/count')
@login_required
def unread_count():
    count = message_service.unread_count(g.user, request.args.get('project'))
    return success({'unreadCount': count})


@messages.get('/search')
@login_required
def search():
    query = parse_query(MessageSearchQuery)
    items, total = message_service.search_messages(g.user, query)
    return success({
        'messages': message_service.as_api_list(items),
        'pagination': pagination(query.page, query.limit, total, 'Messages'),
    })


@messages.get('/<message_id>')
@login_required
def get_message(message_id):
    return success({'message': message_service.get_message(g.user, message_id)})


@messages.put('/<message_id>')
@login_required
def edit_message(message_id):
    payload = parse_body(MessageEdit)
    message = message_service.edit_message(g.user, message_id, payload.content)
    return success({'message': message_service.as_api(message)}, 'Message updated successfully')


@messages.delete('/<message_id>')
@login_required
def delete_message(message_id):
    message_service.delete_message(g.user, message_id)
    return success(message='Message deleted successfully')


@messages.post('/<message_id>/reactions')
@login_required
def react(message_id):
    payload = parse_body(ReactionRequest)
    reactions = message_service.react(g.user, message_id, payload.emoji, payload.action)
    return success({'reactions': reactions}, f'Reaction {"added" if payload.action == "add" else "removed"}')


@messages.post('/<message_id>/pin')
@login_required
def toggle_pin(message_id):
    message = message_service.toggle_pin(g.user, message_id)
    return success({'message': message_service.as_api(message)},
                   'Message pinned' if message.isPinned else 'Message unpinned')


@messages.get('/<message_id>/replies')
@login_required
def replies(message_id):
    query = parse_query(RepliesQuery)
    items, total = message_service.replies(g.user, message_id, query.page, query.limit)
    return success({
        'replies': message_service.as_api_list(items),
        'pagination': pagination(query.page, query.limit, total, 'Replies'),
    })
