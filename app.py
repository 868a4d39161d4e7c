import logging
import time

import click
from bson.errors import InvalidId
from flask import Flask, Blueprint, g, jsonify, request
from flask_cors import CORS
from flask_socketio import emit, disconnect
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError
from werkzeug.exceptions import HTTPException, NotFound

import settings
from synergysphere.namespaces.main import MainNamespace
from synergysphere.realtime import socket_io
from synergysphere.repository import Repository
from synergysphere.routes.auth import auth
from synergysphere.routes.messages import messages
from synergysphere.routes.notifications import notifications
from synergysphere.routes.projects import projects
from synergysphere.routes.tasks import tasks
from synergysphere.routes.users import users
from synergysphere.services import auth_service, notification_service
from synergysphere.util.common import utc_now
from synergysphere.util.exceptions import AppError
from synergysphere.util.log import configure_logging
from synergysphere.util.serialization import MongoJSONProvider

db = Repository.get_instance(**settings.MONGO_CONN)

configure_logging(db)
logger = logging.getLogger('synergysphere')

START_TIME = time.monotonic()

app = Flask(__name__)
app.json = MongoJSONProvider(app)

CORS(app, resources={r'/api/*': {'origins': settings.CLIENT_URL}}, supports_credentials=True)

api = Blueprint('api', __name__, url_prefix='/api')
for blueprint in (auth, users, projects, tasks, messages, notifications):
    api.register_blueprint(blueprint)


@api.get('/health')
def health():
    return jsonify({
        'status': 'OK',
        'message': 'SynergySphere API is running',
        'timestamp': utc_now(),
        'uptime': round(time.monotonic() - START_TIME, 3),
    })


app.register_blueprint(api)

socket_io.init_app(app, cors_allowed_origins=settings.CLIENT_URL)
socket_io.on_namespace(MainNamespace('/'))


@app.route('/')
def index():
    return 'Server is running!'


@app.before_request
def start_timer():
    g.start_time = time.monotonic()


@app.after_request
def log_request(response):
    started = g.get('start_time')
    duration = (time.monotonic() - started) * 1000 if started is not None else 0
    logger.info('%s %s %s %.1fms', request.method, request.path, response.status_code, duration)
    return response


def _error(message: str, status: int, errors=None):
    body = {'success': False, 'message': message}
    if errors:
        body['errors'] = errors
    return jsonify(body), status


@app.errorhandler(AppError)
def handle_app_error(e: AppError):
    if e.status_code >= 500:
        logger.exception(e.message)
    return _error(e.message, e.status_code, getattr(e, 'errors', None))


@app.errorhandler(ValidationError)
def handle_validation_error(e: ValidationError):
    errors = [{'field': '.'.join(str(part) for part in err['loc']), 'message': err['msg']} for err in e.errors()]
    return _error('Validation failed', 400, errors)


@app.errorhandler(InvalidId)
def handle_invalid_id(e: InvalidId):
    return _error(f'Invalid id: {e}', 400)


@app.errorhandler(DuplicateKeyError)
def handle_duplicate_key(e: DuplicateKeyError):
    key_value = (e.details or {}).get('keyValue') or {}
    field = next(iter(key_value), None)
    if field == 'email' or field is None:
        return _error('An account with this email address already exists', 400)
    return _error(f"{field} '{key_value[field]}' already exists", 400)


@app.errorhandler(NotFound)
def handle_not_found(e: NotFound):
    return _error('API endpoint not found', 404)


@app.errorhandler(HTTPException)
def handle_http_exception(e: HTTPException):
    return _error(e.description or e.name, e.code)


@app.errorhandler(Exception)
def handle_unexpected(e: Exception):
    logger.exception('Unhandled error on %s %s', request.method, request.path)
    return _error(f'Something went wrong! {e}' if settings.DEBUG else 'Something went wrong!', 500)


@socket_io.on_error_default
def default_error_handler(e):
    if isinstance(e, ConnectionRefusedError):
        disconnect()
    elif isinstance(e, AppError):
        emit('error', {'error_type': 'application', 'error': e.message})
    else:
        logger.exception('Socket event failed')
        emit('error', {'error_type': 'general', 'error': repr(e)})


@app.cli.command('cleanup-notifications')
def cleanup_notifications():
    """Delete expired notifications and sessions."""
    notifications_deleted = notification_service.cleanup_expired()
    sessions_deleted = auth_service.purge_expired_sessions()
    click.echo(f'Removed {notifications_deleted} notifications and {sessions_deleted} sessions')


@app.cli.command('init-db')
def init_db():
    """Create the MongoDB indexes."""
    db.ensure_indexes()
    click.echo('Indexes created')


if __name__ == '__main__':
    db.ensure_indexes()
    socket_io.run(app, port=settings.APP_PORT, debug=settings.DEBUG, allow_unsafe_werkzeug=settings.DEBUG)
