import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()

APP_PORT = int(os.environ.get('APP_PORT', 5000))

DEBUG = os.environ.get('APP_ENV', 'production') == 'development'

CLIENT_URL = os.environ.get('CLIENT_URL', 'http://localhost:3000')

MONGO_URI = os.environ.get('MONGO_URI', 'mongodb://localhost:27017')
MONGO_DEFAULT_DB = os.environ.get('MONGO_DEFAULT_DB', 'synergysphere')

MONGO_CONN = {
    'uri': MONGO_URI,
    'default_db': MONGO_DEFAULT_DB,
}

ACCESS_TOKEN_TTL = timedelta(days=int(os.environ.get('ACCESS_TOKEN_DAYS', 7)))
REFRESH_TOKEN_TTL = timedelta(days=int(os.environ.get('REFRESH_TOKEN_DAYS', 30)))
RESET_TOKEN_TTL = timedelta(minutes=10)
NOTIFICATION_TTL = timedelta(days=30)

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
LOG_TO_DB = os.environ.get('LOG_TO_DB', '').lower() in ('1', 'true', 'yes')
