"""Load AppSettings from a TOML file plus environment overrides."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import tomlkit
from pydantic import ValidationError
from tomlkit.exceptions import TOMLKitError

from domain.errors import SettingsError
from domain.models import AppSettings
from shared.constants import CONFIG_FILE

logger = logging.getLogger(__name__)

# Переменная окружения -> путь к полю настроек
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    'PORT': ('port',),
    'HOST': ('host',),
    'CACHE_DIR': ('cache_dir',),
    'ASSET_DIR': ('asset_dir',),
    'OSM_BASE_URL': ('osm_base_url',),
    'LOG_LEVEL': ('log_level',),
    'CORS_ENABLED': ('cors', 'enabled'),
    'CORS_ALLOWED_ORIGINS': ('cors', 'allowed_origins'),
    'CORS_ALLOWED_METHODS': ('cors', 'allowed_methods'),
    'CORS_ALLOWED_HEADERS': ('cors', 'allowed_headers'),
    'CORS_MAX_AGE': ('cors', 'max_age'),
}


def read_config_file(path: Path) -> dict[str, Any]:
    """
    Прочитать TOML файл конфигурации в обычный словарь.

    Отсутствующий файл и синтаксическая ошибка не фатальны: возвращается
    пустой словарь, т.е. значения по умолчанию.
    """
    if not path.exists():
        logger.warning('Config file %s not found, using defaults', path)
        return {}
    try:
        text = path.read_text(encoding='utf-8')
        return tomlkit.parse(text).unwrap()
    except (OSError, TOMLKitError) as e:
        logger.error('Failed to parse config file %s, using defaults: %s', path, e)
        return {}


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Наложить переменные окружения поверх данных файла (строки приводит pydantic)."""
    merged = dict(data)
    for var, field_path in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value is None or value == '':
            continue
        target = merged
        for part in field_path[:-1]:
            section = target.get(part)
            section = dict(section) if isinstance(section, Mapping) else {}
            target[part] = section
            target = section
        target[field_path[-1]] = value
        logger.debug('Config override from %s', var)
    return merged


def load_settings(
    path: str | Path = CONFIG_FILE,
    environ: Mapping[str, str] | None = None,
) -> AppSettings:
    """
    Загрузка и валидация настроек: файл TOML -> env -> AppSettings.

    Raises:
        SettingsError: если значения не проходят валидацию.

    """
    env = os.environ if environ is None else environ
    config_path = Path(path)
    data = apply_env_overrides(read_config_file(config_path), env)
    # Пути маркеров в конфиге задаются относительно самого файла
    data.setdefault('asset_dir', str(config_path.resolve().parent))
    try:
        settings = AppSettings.model_validate(data)
    except ValidationError as e:
        msg = f'Invalid configuration in {path}: {e}'
        raise SettingsError(msg) from e
    logger.info(
        'Settings loaded: port=%d, zoom=[%d, %d], markers=%s',
        settings.port,
        settings.min_zoom,
        settings.max_zoom,
        [m.name for m in settings.markers],
    )
    return settings
