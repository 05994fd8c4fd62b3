"""
Collaborator wiring — database, Redis, Google Sheets, CRM client.

build_services() constructs everything from config; create_app() stores the
result on app.extensions so routes never reach for module-level clients.
Tests hand create_app() their own Services with fakes.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

import redis
from flask import current_app

from sheetsync.config import DATABASE_URL, REDIS_URL
from sheetsync.database import make_engine, make_session_factory
from sheetsync.pipeline.base import Throttle
from sheetsync.pipeline.manager import SyncManager
from sheetsync.pipeline.relay import LeadRelay
from sheetsync.services.circuit_breaker import init_breakers
from sheetsync.services.crm import CrmClient
from sheetsync.services.sheets import GoogleSheetsReader
from sheetsync.services.store import LeadStore

logger = logging.getLogger('sheetsync.extensions')

EXTENSION_KEY = 'sheetsync'


@dataclass
class Services:
    store: LeadStore
    reader: Any
    crm_client: Any
    redis_client: Any = None
    engine: Any = None
    throttle: Optional[Throttle] = None

    def sync_manager(self) -> SyncManager:
        """Fresh manager per run; collaborators are shared."""
        return SyncManager(self.store, self.reader, LeadRelay(self.crm_client), throttle=self.throttle)


def build_services(database_url=DATABASE_URL, redis_url=REDIS_URL) -> Services:
    """Construct production collaborators. Nothing connects until first use."""
    engine = make_engine(database_url)
    redis_client = redis.from_url(redis_url, decode_responses=True)
    breakers = init_breakers(redis_client)

    services = Services(
        store=LeadStore(make_session_factory(engine)),
        reader=GoogleSheetsReader(breaker=breakers['google_sheets']),
        crm_client=CrmClient(breaker=breakers['crm']),
        redis_client=redis_client,
        engine=engine,
    )
    logger.info("Services initialized (database=%s)", engine.url.render_as_string(hide_password=True))
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
