"""Integration tests for the Lambda handler and command line entry point."""
import json
import logging
import os
from unittest.mock import Mock, patch

import pytest

from lambda_function import (
    format_report,
    lambda_handler,
    load_settings,
    main,
    setup_logging,
)
from processor.models import CrawlRun


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo setup_logging so later tests keep pytest's handlers."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def mock_env():
    """Set up environment variables for testing."""
    env_vars = {
        'TABLE_NAME': 'test-volunteer-events',
        'LOG_LEVEL': 'INFO',
        'SITE_URL': 'https://www.baiedessinges.com/programme/liste/',
        'IMAGES_DIR': '/tmp/images',
        'FIRST_SEASON_YEAR': '1995',
        'PAGE_DELAY_SECONDS': '0'
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars


@pytest.fixture
def mock_context():
    """Create a mock Lambda context."""
    context = Mock()
    context.function_name = 'test-function'
    context.aws_request_id = 'test-request-id'
    return context


@pytest.fixture
def sample_run():
    return CrawlRun(
        found=5, created=2, updated=1, skipped=1, errors=1,
        feeds={'upcoming': 3, 'past': 2},
        error_messages=['https://site/x: bad date']
    )


class TestLambdaHandler:
    """Test cases for Lambda handler."""

    @patch('lambda_function.CrawlOrchestrator')
    @patch('lambda_function.EventStore')
    def test_successful_crawl(
        self, mock_store_class, mock_orchestrator_class, mock_env, mock_context, sample_run
    ):
        mock_orchestrator_class.return_value.run.return_value = sample_run

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['message'] == 'Crawl completed successfully'
        assert body['stats']['found'] == 5
        assert body['stats']['created'] == 2
        assert body['stats']['updated'] == 1
        assert body['stats']['skipped'] == 1
        assert body['stats']['errors'] == 1
        assert body['stats']['feeds'] == {'upcoming': 3, 'past': 2}
        assert 'duration_seconds' in body['stats']
        assert body['errors'] == ['https://site/x: bad date']

        mock_store_class.assert_called_once_with(table_name='test-volunteer-events')
        settings = mock_orchestrator_class.call_args.kwargs['settings']
        assert settings.page_delay == 0
        assert settings.images_dir == '/tmp/images'

    @patch('lambda_function.CrawlOrchestrator')
    @patch('lambda_function.EventStore')
    def test_nothing_found(self, mock_store_class, mock_orchestrator_class, mock_env, mock_context):
        mock_orchestrator_class.return_value.run.return_value = CrawlRun(
            feeds={'upcoming': 0, 'past': 0}
        )

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['message'] == 'No events found on the site'
        assert body['stats']['found'] == 0

    @patch('lambda_function.CrawlOrchestrator')
    @patch('lambda_function.EventStore')
    def test_crawl_failure(self, mock_store_class, mock_orchestrator_class, mock_env, mock_context):
        mock_orchestrator_class.return_value.run.side_effect = Exception('Network error')

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['message'] == 'Crawl failed'
        assert 'Network error' in body['error']
        assert body['error_type'] == 'Exception'
        assert 'duration_seconds' in body

    @patch('lambda_function.EventStore')
    def test_status_action(self, mock_store_class, mock_env, mock_context):
        store = mock_store_class.return_value
        store.count_imported_events.return_value = 42
        store.get_last_imported.return_value = {'name': 'Cirque', 'updated_at': '2025-10-01T10:00:00+00:00'}

        response = lambda_handler({'action': 'status'}, mock_context)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['stats']['total_imported'] == 42
        assert body['stats']['last_imported']['name'] == 'Cirque'
        store.close.assert_called_once()

    @patch('lambda_function.EventStore')
    def test_status_failure(self, mock_store_class, mock_env, mock_context):
        mock_store_class.return_value.count_imported_events.side_effect = Exception('no table')

        response = lambda_handler({'action': 'status'}, mock_context)

        assert response['statusCode'] == 500
        assert json.loads(response['body'])['error'] == 'no table'

    @patch('lambda_function.CrawlOrchestrator')
    @patch('lambda_function.EventStore')
    @patch('lambda_function.setup_logging')
    def test_logging_output(
        self, mock_setup_logging, mock_store_class, mock_orchestrator_class,
        mock_env, mock_context, sample_run, caplog
    ):
        mock_orchestrator_class.return_value.run.return_value = sample_run

        with caplog.at_level(logging.INFO, logger='lambda_function'):
            response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 200
        log_messages = [record.message for record in caplog.records]
        assert any('Lambda execution started' in msg for msg in log_messages)
        assert any('Crawling events from the official site' in msg for msg in log_messages)
        assert any('Lambda execution completed successfully' in msg for msg in log_messages)


class TestMain:
    """Command line entry point."""

    @patch('lambda_function.setup_logging')
    @patch('lambda_function.run_crawl')
    def test_prints_report_and_exits_zero(self, mock_run_crawl, mock_setup_logging, mock_env, sample_run, capsys):
        mock_run_crawl.return_value = sample_run

        assert main(['--table-name', 'other-table']) == 0

        out = capsys.readouterr().out
        assert 'Events found:    5' in out
        assert 'Errors:          1' in out
        assert mock_run_crawl.call_args.args[0].table_name == 'other-table'

    @patch('lambda_function.setup_logging')
    @patch('lambda_function.run_crawl')
    def test_fatal_error_exits_one(self, mock_run_crawl, mock_setup_logging, mock_env, capsys):
        mock_run_crawl.side_effect = RuntimeError('browser failed')

        assert main([]) == 1
        assert 'browser failed' in capsys.readouterr().err

    @patch('lambda_function.setup_logging')
    @patch('lambda_function.get_import_status')
    def test_status_flag(self, mock_status, mock_setup_logging, mock_env, capsys):
        mock_status.return_value = {'total_imported': 3, 'last_imported': None}

        assert main(['--status']) == 0
        assert 'Imported events: 3' in capsys.readouterr().out


class TestSettingsAndReport:
    """Configuration and summary formatting."""

    def test_defaults(self):
        settings = load_settings({})
        assert settings.table_name == 'volunteer-events'
        assert settings.list_timeout == 30
        assert settings.detail_timeout == 15
        assert settings.image_timeout == 10
        assert settings.first_season_year == 1995
        assert settings.debug_dir is None

    def test_overrides(self):
        settings = load_settings({'DETAIL_TIMEOUT_SECONDS': '5', 'DEBUG_DIR': '/tmp/debug'})
        assert settings.detail_timeout == 5.0
        assert settings.debug_dir == '/tmp/debug'

    def test_report_lists_counts(self, sample_run):
        report = format_report(sample_run)
        assert 'Created:         2' in report
        assert 'Updated:         1' in report
        assert 'Skipped:         1' in report
        assert 'upcoming       3' in report
        assert 'https://site/x: bad date' in report


class TestSetupLogging:
    """Test cases for logging setup."""

    def test_setup_logging_default_level(self):
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_debug_level(self):
        setup_logging('DEBUG')
        assert logging.getLogger().level == logging.DEBUG

    def test_json_output(self, capsys):
        setup_logging('INFO')
        logging.getLogger('crawler.test').info('Créé: Cirque')
        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record['message'] == 'Créé: Cirque'
        assert record['level'] == 'INFO'
        assert record['logger'] == 'crawler.test'
