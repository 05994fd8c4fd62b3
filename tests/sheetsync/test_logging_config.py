"""Tests for structured logging configuration."""
import json
import logging
import os
from unittest.mock import patch

import pytest
from flask import Flask

from sheetsync.logging_config import configure_logging, JSONFormatter


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """Reset root logger state after each test."""
    root = logging.getLogger()
    original_level = root.level
    original_handlers = root.handlers[:]
    yield
    root.setLevel(original_level)
    root.handlers = original_handlers


class TestConfigureLogging:

    def test_default_level_is_info(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('LOG_LEVEL', None)
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_log_level_env_var_case_insensitive(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'debug'}):
            configure_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_log_level_defaults_to_info(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'NONSENSE'}):
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_explicit_level_beats_env(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'DEBUG'}):
            configure_logging(level='WARNING')
        assert logging.getLogger().level == logging.WARNING

    def test_text_format(self, capsys):
        configure_logging(fmt='text')
        logging.getLogger('pipeline.manager').info("processed %d rows", 3)
        output = capsys.readouterr().err
        assert 'pipeline.manager' in output
        assert 'processed 3 rows' in output
        assert 'INFO' in output

    def test_json_format_produces_parseable_json(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json'}):
            configure_logging()
        logging.getLogger('test.json').info("structured log")
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['level'] == 'INFO'
        assert parsed['logger'] == 'test.json'
        assert parsed['message'] == 'structured log'
        assert 'timestamp' in parsed

    def test_json_includes_sync_context(self, capsys):
        configure_logging(fmt='json')
        logging.getLogger('test.ctx').info("row done", extra={'aid': 'tenant-001', 'row_number': 4})
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['aid'] == 'tenant-001'
        assert parsed['row_number'] == 4
        assert 'sub_sheet' not in parsed

    def test_json_format_includes_exception(self, capsys):
        configure_logging(fmt='json')
        try:
            raise ValueError("boom")
        except ValueError:
            logging.getLogger('test.exc').error("failed", exc_info=True)
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['level'] == 'ERROR'
        assert 'ValueError' in parsed['exception']

    def test_third_party_loggers_quieted(self):
        configure_logging()
        for name in ['urllib3', 'googleapiclient', 'google.auth', 'werkzeug']:
            assert logging.getLogger(name).level == logging.WARNING

    def test_no_duplicate_handlers_on_repeated_calls(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_flask_logger_propagates_to_root(self):
        app = Flask('logging-test')
        configure_logging(app, level='DEBUG')
        assert app.logger.handlers == []
        assert app.logger.propagate is True
        assert app.logger.level == logging.DEBUG


class TestJSONFormatter:

    def test_format_basic_record(self):
        record = logging.LogRecord(
            name='test', level=logging.INFO, pathname='', lineno=0,
            msg='hello %s', args=('world',), exc_info=None,
        )
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed['message'] == 'hello world'
        assert parsed['level'] == 'INFO'
        assert parsed['logger'] == 'test'
