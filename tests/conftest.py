"""Shared test fixtures."""
import pytest
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sheetsync.database import Base, import_models, make_session_factory
from sheetsync.pipeline.base import Throttle
from sheetsync.services.sheets import a1_range, rows_from_values
from sheetsync.services.store import LeadStore

AID = 'tenant-001'
SHEET_ID = 'sheet-abc'

DEFAULT_HEADERS = ['Full Name', 'Phone Number', 'Email Address', 'Source', 'City']


class FakeSheetsReader:
    """In-memory spreadsheet collaborator: {spreadsheet_id: {sub_sheet: values grid}}."""

    def __init__(self, sheets=None):
        self.sheets = sheets or {}
        self.fetched_ranges = []

    def add_sub_sheet(self, spreadsheet_id, name, rows, headers=None):
        grid = [list(headers or DEFAULT_HEADERS)] + [list(r) for r in rows]
        self.sheets.setdefault(spreadsheet_id, {})[name] = grid

    def get_sheet_info(self, spreadsheet_id):
        return {
            'title': f'Spreadsheet {spreadsheet_id}',
            'sheets': [
                {'title': name, 'sheetId': idx}
                for idx, name in enumerate(self.sheets.get(spreadsheet_id, {}))
            ],
        }

    def list_sub_sheets(self, spreadsheet_id):
        return list(self.sheets.get(spreadsheet_id, {}))

    def fetch_rows(self, spreadsheet_id, range_a1=None):
        self.fetched_ranges.append(range_a1)
        for name, grid in self.sheets.get(spreadsheet_id, {}).items():
            if a1_range(name) == range_a1:
                return rows_from_values(grid)
        return []

    def fetch_headers(self, spreadsheet_id):
        return {name: list(grid[0]) if grid else [] for name, grid in self.sheets.get(spreadsheet_id, {}).items()}


class FakeCrmClient:
    """Records submitted payloads; answers with `response` or raises `error`."""

    def __init__(self, response=None, error=None):
        self.response = response if response is not None else {'status': 'success'}
        self.error = error
        self.calls = []

    def submit_lead(self, payload, tenant_key):
        self.calls.append((payload, tenant_key))
        if self.error is not None:
            raise self.error
        return self.response


class FakeRedis:
    """Minimal in-memory Redis fake for circuit breaker tests."""

    def __init__(self):
        self.get_store = {}
        self.hash_store = {}

    def get(self, key):
        return self.get_store.get(key)

    def set(self, key, value):
        self.get_store[key] = value

    def incr(self, key):
        val = int(self.get_store.get(key, 0)) + 1
        self.get_store[key] = str(val)
        return val

    def delete(self, *keys):
        for k in keys:
            self.get_store.pop(k, None)
            self.hash_store.pop(k, None)

    def hset(self, key, field, value):
        self.hash_store.setdefault(key, {})[field] = value

    def hincrby(self, key, field, amount):
        h = self.hash_store.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)

    def hgetall(self, key):
        return dict(self.hash_store.get(key, {}))

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    """Fake Redis pipeline that executes on execute()."""

    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    def set(self, key, value):
        self._ops.append(('set', key, value))
        return self

    def delete(self, *keys):
        self._ops.append(('delete', keys))
        return self

    def hincrby(self, key, field, amount):
        self._ops.append(('hincrby', key, field, amount))
        return self

    def hset(self, key, field, value):
        self._ops.append(('hset', key, field, value))
        return self

    def execute(self):
        for op in self._ops:
            if op[0] == 'set':
                self._redis.set(op[1], op[2])
            elif op[0] == 'delete':
                self._redis.delete(*op[1])
            elif op[0] == 'hincrby':
                self._redis.hincrby(op[1], op[2], op[3])
            elif op[0] == 'hset':
                self._redis.hset(op[1], op[2], op[3])
        self._ops = []


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created, shared across sessions."""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import_models()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture
def db_session(db_engine):
    """Session for assertions on what the store committed."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def store(session_factory):
    return LeadStore(session_factory)


@pytest.fixture
def reader():
    return FakeSheetsReader()


@pytest.fixture
def crm_client():
    return FakeCrmClient()


@pytest.fixture
def no_throttle():
    return Throttle(every=0, delay=0)


@pytest.fixture
def make_mapping(store):
    """Factory fixture — saves a field mapping using the default headers."""
    def _make(sub_sheet='Sheet1', aid=AID, sheet_id=SHEET_ID, **overrides):
        mapping = {
            'cust_name': 'Full Name',
            'cust_phone_no': 'Phone Number',
            'cust_email': 'Email Address',
            'source_name': 'Source',
            'city_name': 'City',
        }
        mapping.update(overrides)
        return store.upsert_field_mapping(aid, sheet_id, sub_sheet, mapping)
    return _make


@pytest.fixture
def services(store, reader, crm_client, no_throttle):
    from sheetsync.extensions import Services
    return Services(
        store=store,
        reader=reader,
        crm_client=crm_client,
        redis_client=MagicMock(),
        throttle=no_throttle,
    )


@pytest.fixture
def app(services):
    """Flask test app wired to in-memory collaborators."""
    from sheetsync import create_app
    app = create_app(services=services)
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def fake_redis():
    """In-memory Redis fake for circuit breaker state."""
    return FakeRedis()
