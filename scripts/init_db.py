"""
Create the sheetsync tables in DATABASE_URL.

Usage:
    DATABASE_URL=postgresql://... python scripts/init_db.py
"""
import logging

from sheetsync.config import DATABASE_URL
from sheetsync.database import make_engine, init_db
from sheetsync.logging_config import configure_logging

logger = logging.getLogger('scripts.init_db')


def main():
    configure_logging()
    engine = make_engine(DATABASE_URL)
    try:
        init_db(engine)
        logger.info("Tables created or already present in %s", engine.url.render_as_string(hide_password=True))
    finally:
        engine.dispose()
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
