"""
Structured logging configuration.

configure_logging() runs once from create_app() and from scripts. Text output
for local runs, single-line JSON for log shippers (LOG_FORMAT=json).

Sync code can attach run context through `extra=`:

    logger.info("Processing %d rows", n, extra={'aid': aid, 'sub_sheet': name})

The JSON formatter lifts those keys into the entry; the text formatter ignores them.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

# Keys lifted from LogRecord.__dict__ into JSON entries when present
CONTEXT_FIELDS = ('aid', 'spreadsheet_id', 'sub_sheet', 'row_number', 'lead_id', 'sync_id')

TEXT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'
TEXT_DATEFMT = '%Y-%m-%d %H:%M:%S'

# Google client and driver loggers are chatty at INFO
_QUIET_LOGGERS = [
    'urllib3',
    'googleapiclient',
    'googleapiclient.discovery_cache',
    'google.auth',
    'google_auth_httplib2',
    'sqlalchemy.engine',
    'werkzeug',
]


class JSONFormatter(logging.Formatter):

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _resolve_level(name):
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(app=None, level=None, fmt=None):
    """
    Install a single stderr handler on the root logger.

    `level` and `fmt` override LOG_LEVEL / LOG_FORMAT. With a Flask `app`, its
    logger drops Flask's default handler and propagates to root instead.
    """
    level = _resolve_level(level or os.getenv('LOG_LEVEL', 'INFO'))
    fmt = (fmt or os.getenv('LOG_FORMAT', 'text')).lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if fmt == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.handlers.clear()
        app.logger.propagate = True
        app.logger.setLevel(level)
