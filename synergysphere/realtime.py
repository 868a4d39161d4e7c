import logging

from flask_socketio import SocketIO

from synergysphere.util.serialization import to_json_safe

logger = logging.getLogger(__name__)

socket_io = SocketIO()


def project_room(project_id) -> str:
    return f'project_{project_id}'


def user_room(user_id) -> str:
    return f'user_{user_id}'


def emit_to_project(project_id, event: str, payload: dict) -> None:
    logger.debug('emit %s to %s', event, project_room(project_id))
    socket_io.emit(event, to_json_safe(payload), to=project_room(project_id), namespace='/')


def emit_to_user(user_id, event: str, payload: dict) -> None:
    logger.debug('emit %s to %s', event, user_room(user_id))
    socket_io.emit(event, to_json_safe(payload), to=user_room(user_id), namespace='/')
