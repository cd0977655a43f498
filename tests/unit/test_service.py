"""
Unit tests for startup wiring (pgvault/__init__.py).

Tests logging setup, create_service and the main() exit contract.
"""

import logging
import os
from unittest.mock import MagicMock, patch

import pytest

import pgvault
from pgvault import configure_logging, create_service, main
from pgvault import scheduler as scheduler_module
from pgvault.config import ConfigError, ProductionConfig


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestConfigureLogging:
    """Test configure_logging."""

    def test_creates_log_dir_and_file_handler(self, config, restore_root_logger):
        logging.getLogger().handlers = []

        configure_logging(config)

        assert os.path.isdir(config['LOG_DIR'])
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert any(
            getattr(h, 'baseFilename', '').endswith('pgvault.log') for h in root.handlers
        )

    def test_debug_level(self, config, restore_root_logger):
        logging.getLogger().handlers = []
        config['DEBUG'] = True

        configure_logging(config)

        assert logging.getLogger().level == logging.DEBUG


class TestCreateService:
    """Test create_service."""

    @patch('pgvault.scheduler.init_scheduler')
    @patch('pgvault.configure_logging')
    @patch('pgvault.load_config')
    def test_create_service(self, mock_load_config, mock_logging, mock_init, config, backup_env):
        mock_load_config.return_value = config
        mock_init.return_value = 'scheduler'

        result = create_service('production', environ=backup_env)

        assert result == 'scheduler'
        assert os.path.isdir(config['TEMP_DIR'])
        mock_logging.assert_called_once_with(config)
        passed_config, passed_settings = mock_init.call_args[0]
        assert passed_config is config
        assert passed_settings.bucket == 'smultronbyn-backups'

    @patch('pgvault.scheduler.init_scheduler')
    @patch('pgvault.configure_logging')
    @patch('pgvault.load_config')
    def test_create_service_missing_settings(self, mock_load_config, mock_logging, mock_init, config):
        mock_load_config.return_value = config

        with pytest.raises(ConfigError):
            create_service('production', environ={})

        mock_init.assert_not_called()


class TestMain:
    """Test the process entry point."""

    @patch('pgvault.create_service', side_effect=ConfigError("Missing required environment variables: DB_HOST"))
    def test_config_error_exits_1(self, mock_create):
        assert main() == 1

    @patch('pgvault.scheduler.init_scheduler')
    def test_invalid_schedule_exits_1_before_scheduling(self, mock_init, monkeypatch, backup_env):
        for name, value in backup_env.items():
            monkeypatch.setenv(name, value)
        monkeypatch.setattr(ProductionConfig, 'BACKUP_CRON', '99 3 * * *')

        assert main('production') == 1

        mock_init.assert_not_called()

    @patch('pgvault.signal.signal')
    @patch('pgvault.scheduler.stop_scheduler')
    @patch('pgvault.scheduler.trigger_backup_now')
    @patch('pgvault.scheduler.start_scheduler')
    @patch('pgvault.create_service')
    def test_failed_run_exits_1(self, mock_create, mock_start, mock_trigger, mock_stop, mock_signal, config):
        config['RUN_NOW'] = True
        scheduler_module.backup_config = config
        scheduler_module.request_shutdown(1)

        assert main() == 1

        mock_start.assert_called_once()
        mock_trigger.assert_called_once()
        mock_stop.assert_called_once()

    @patch('pgvault.signal.signal')
    @patch('pgvault.scheduler.stop_scheduler')
    @patch('pgvault.scheduler.trigger_backup_now')
    @patch('pgvault.scheduler.start_scheduler')
    @patch('pgvault.create_service')
    def test_signal_exits_0_without_run_now(self, mock_create, mock_start, mock_trigger, mock_stop, mock_signal, config):
        scheduler_module.backup_config = config

        def _register(signum, handler):
            # Simulate SIGTERM arriving right after the handler is installed
            handler(signum, None)

        mock_signal.side_effect = _register

        assert main() == 0

        mock_trigger.assert_not_called()
        mock_stop.assert_called_once()
