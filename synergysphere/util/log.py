import logging
import traceback
from datetime import datetime, timezone

import settings
from synergysphere.models.log_item import LogItem
from synergysphere.repository import Collection

FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


class MongoLogHandler(logging.Handler):
    """
    Persists log records as LogItem documents in the application_log collection.
    """

    def __init__(self, repository, level=logging.WARNING):
        super(MongoLogHandler, self).__init__(level)
        self.repository = repository

    def emit(self, record: logging.LogRecord) -> None:
        content = record.getMessage()
        if record.exc_info:
            content = content + '\n' + ''.join(traceback.format_exception(*record.exc_info))
        item = LogItem(_id=None,
                       timestamp=str(datetime.fromtimestamp(record.created)),
                       utcTimestamp=str(datetime.fromtimestamp(record.created, timezone.utc)),
                       logLevel=record.levelname,
                       note=record.name,
                       content=content)
        try:
            self.repository.insert(Collection.APPLICATION_LOG, item)
        except Exception:
            self.handleError(record)


def configure_logging(repository=None) -> None:
    logging.basicConfig(level=settings.LOG_LEVEL, format=FORMAT)
    if settings.LOG_TO_DB and repository is not None:
        logging.getLogger().addHandler(MongoLogHandler(repository))
