"""Tests for the command line entry point."""

import logging
from unittest.mock import patch

from domain.errors import SettingsError
from domain.models import AppSettings
from main import build_parser, main, setup_logging
from shared.constants import LOG_FORMAT


class TestSetupLogging:
    def test_configures_root_logger(self, tmp_path):
        log_file = tmp_path / 'logs' / 'server.log'
        with patch('main.logging.basicConfig') as basic:
            setup_logging('debug', log_file)
        kwargs = basic.call_args.kwargs
        assert kwargs['level'] == logging.DEBUG
        assert kwargs['format'] == LOG_FORMAT
        assert len(kwargs['handlers']) == 2
        assert log_file.parent.is_dir()
        for handler in kwargs['handlers']:
            handler.close()

    def test_unknown_level_defaults_to_info(self):
        with patch('main.logging.basicConfig') as basic:
            setup_logging('verbose')
        assert basic.call_args.kwargs['level'] == logging.INFO


class TestMain:
    """Tests for main function."""

    def test_parser(self):
        args = build_parser().parse_args(['--config', 'x.toml', '--port', '8000'])
        assert args.config == 'x.toml'
        assert args.port == 8000
        assert args.host is None

    def test_runs_app_with_overrides(self):
        with (
            patch('main.setup_logging'),
            patch('main.load_settings', return_value=AppSettings()),
            patch('main.create_app') as create_app,
            patch('main.web.run_app') as run_app,
        ):
            assert main(['--host', '127.0.0.1', '--port', '8123']) == 0
        settings = create_app.call_args.args[0]
        assert settings.port == 8123
        assert run_app.call_args.kwargs['host'] == '127.0.0.1'
        assert run_app.call_args.kwargs['port'] == 8123

    def test_invalid_settings_exit_code(self):
        with (
            patch('main.setup_logging'),
            patch('main.load_settings', side_effect=SettingsError('bad')),
            patch('main.web.run_app') as run_app,
        ):
            assert main([]) == 2
        run_app.assert_not_called()
