import logging

from bson.errors import InvalidId
from flask import request, session
from flask_socketio import emit, join_room, leave_room, Namespace

from synergysphere.realtime import project_room, user_room
from synergysphere.services import auth_service, project_service
from synergysphere.util.auth import bearer_token
from synergysphere.util.exceptions import AppError
from synergysphere.util.serialization import to_json_safe

logger = logging.getLogger(__name__)


# noinspection PyMethodMayBeStatic
class MainNamespace(Namespace):

    def on_connect(self, auth=None):
        token = bearer_token(request.headers) or (auth or {}).get('token')
        try:
            user = auth_service.authenticate(token)
        except AppError as e:
            logger.info('Socket connection refused: %s', e.message)
            raise ConnectionRefusedError('unauthorized!')

        session['user'] = {'id': str(user.id), 'name': user.name, 'avatar': user.avatar}
        session['rooms'] = []
        join_room(user_room(user.id))
        logger.debug('User %s connected (%s)', user.id, request.sid)
        emit('connection_response', {'success': True, 'userId': str(user.id)})

    def on_disconnect(self, reason=None):
        user = session.get('user')
        if user is None:
            return
        for room in session.get('rooms', []):
            emit('user_left', {'userId': user['id'], 'name': user['name']}, to=room)
        logger.debug('User %s disconnected', user['id'])

    def on_join_project(self, data):
        if not self.__validate(data, ['projectId']):
            return
        try:
            project = project_service.get_project(data['projectId'])
        except (AppError, InvalidId):
            emit('error', {'error_type': 'project_not_found'})
            return
        if not project.is_member(session['user']['id']):
            emit('error', {'error_type': 'access_denied', 'message': 'Not a member of this project'})
            return

        room = project_room(project.id)
        join_room(room)
        if room not in session['rooms']:
            session['rooms'] = session['rooms'] + [room]
        emit('joined_project', {'projectId': str(project.id)})
        emit('user_joined', self.__user_payload(), to=room, include_self=False)

    def on_leave_project(self, data):
        if not self.__validate(data, ['projectId']):
            return
        room = project_room(data['projectId'])
        emit('user_left', self.__user_payload(), to=room, include_self=False)
        leave_room(room)
        session['rooms'] = [r for r in session.get('rooms', []) if r != room]

    def on_send_message(self, data):
        if self.__validate(data, ['projectId', 'message']):
            self.__relay(data, 'new_message')

    def on_task_update(self, data):
        if self.__validate(data, ['projectId', 'task']):
            self.__relay(data, 'task_updated')

    def __relay(self, data: dict, event: str) -> None:
        room = project_room(data['projectId'])
        if room not in session.get('rooms', []):
            emit('error', {'error_type': 'not_in_room', 'message': 'Join the project before sending events'})
            return
        payload = to_json_safe(data)
        payload['sender'] = self.__user_payload()
        emit(event, payload, to=room, include_self=False)

    @staticmethod
    def __user_payload() -> dict:
        user = session['user']
        return {'userId': user['id'], 'name': user['name'], 'avatar': user['avatar']}

    @staticmethod
    def __validate(to_check, required_keys: list) -> bool:
        if isinstance(to_check, dict) and all(key in to_check for key in required_keys):
            return True
        present = list(to_check) if isinstance(to_check, dict) else []
        emit('error', {'error_type': 'missingParameters', 'message': [i for i in required_keys if i not in present]})
        return False
