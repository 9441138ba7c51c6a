"""Main entry point for the static map server."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from aiohttp import web

from domain.errors import SettingsError
from infrastructure.http.server import create_app
from settings import load_settings
from shared.constants import CONFIG_FILE, LOG_FORMAT

logger = logging.getLogger(__name__)


def setup_logging(level: str = 'INFO', log_file: str | Path | None = None) -> None:
    """Configure root logging to stdout and, optionally, a UTF-8 file."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(path), encoding='utf-8'))
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Static map server - OpenStreetMap tiles with a marker'
    )
    parser.add_argument('--config', default=CONFIG_FILE, help='Path to TOML config file')
    parser.add_argument('--host', help='Bind address (overrides config)')
    parser.add_argument('--port', type=int, help='Listen port (overrides config)')
    parser.add_argument('--log-level', help='DEBUG, INFO, WARNING, ERROR')
    parser.add_argument('--log-file', help='Also write logs to this file')
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    # Предварительная настройка, чтобы видеть сообщения загрузчика конфигурации
    setup_logging(args.log_level or 'INFO', args.log_file)

    try:
        settings = load_settings(args.config)
    except SettingsError as e:
        logger.error('%s', e)
        return 2

    overrides = {
        k: v for k, v in (('host', args.host), ('port', args.port)) if v is not None
    }
    if overrides:
        settings = settings.model_copy(update=overrides)
    if not args.log_level:
        setup_logging(settings.log_level, args.log_file)

    logger.info('Starting static map server on %s:%d', settings.host, settings.port)
    web.run_app(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        print=None,
    )
    return 0


if __name__ == '__main__':
    sys.exit(main())
