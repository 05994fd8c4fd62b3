"""Tests for sheetsync.database — engine construction and schema creation."""
from unittest.mock import patch

from sqlalchemy import inspect

from sheetsync.database import init_db, make_engine, make_session_factory


class TestMakeEngine:

    def test_sqlite_engine(self, tmp_path):
        engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
        assert engine.dialect.name == 'sqlite'
        engine.dispose()

    @patch('sheetsync.database.create_engine')
    def test_postgres_scheme_rewritten(self, mock_create):
        make_engine('postgres://user:pw@db/sync')
        url = mock_create.call_args.args[0]
        assert url == 'postgresql://user:pw@db/sync'
        assert mock_create.call_args.kwargs['pool_pre_ping'] is True

    @patch('sheetsync.database.create_engine')
    def test_sqlite_gets_thread_arg(self, mock_create):
        make_engine('sqlite:///local.db')
        assert mock_create.call_args.kwargs == {'connect_args': {'check_same_thread': False}}


class TestInitDb:

    def test_creates_all_tables(self, tmp_path):
        engine = make_engine(f"sqlite:///{tmp_path / 'schema.db'}")
        init_db(engine)
        tables = set(inspect(engine).get_table_names())
        assert {'sheet_connectors', 'field_mappings', 'leads', 'failed_leads', 'sync_history'} <= tables
        engine.dispose()

    def test_idempotent(self, tmp_path):
        engine = make_engine(f"sqlite:///{tmp_path / 'schema.db'}")
        init_db(engine)
        init_db(engine)
        engine.dispose()


class TestSessionFactory:

    def test_rows_usable_after_commit(self, db_engine):
        from sheetsync.models.connector import SheetConnector
        Session = make_session_factory(db_engine)
        with Session() as session:
            connector = SheetConnector(aid='t', sheet_id='s')
            session.add(connector)
            session.commit()
        assert connector.sheet_id == 's'
        assert connector.id is not None
