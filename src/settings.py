from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import tomlkit
from pydantic import BaseModel, field_validator

from shared.constants import (
    ALLOWED_TILE_SIZES,
    AZURE_STATIC_API_VERSION,
    AZURE_TILE_API_VERSION,
    DOWNLOAD_CONCURRENCY,
    EXPORT_TILE_SIZE,
    HTTP_BACKOFF_FACTOR,
    HTTP_CACHE_ENABLED,
    HTTP_RETRIES_DEFAULT,
    HTTP_TIMEOUT_DEFAULT,
    MAX_EXPORT_TILES,
    MapStyle,
    default_map_style,
    resolve_map_style,
)

logger = logging.getLogger(__name__)

PROFILE_SECTION = 'export'


class ExportSettings(BaseModel):
    """Установки экспорта, читаются из TOML-профиля (секция [export])."""

    model_config = {
        'extra': 'ignore',  # игнорировать лишние поля из профилей
    }

    # Размер запрашиваемого тайла (256 или 512)
    tile_size: int = EXPORT_TILE_SIZE
    # Потолок числа тайлов на один экспорт
    max_tiles: int = MAX_EXPORT_TILES
    # Параллельные загрузки тайлов (1 = последовательно)
    concurrency: int = DOWNLOAD_CONCURRENCY
    # Таймаут одного тайла, сек
    timeout_s: float = HTTP_TIMEOUT_DEFAULT
    # Число попыток на тайл
    retries: int = HTTP_RETRIES_DEFAULT
    # Основание экспоненты задержки между попытками
    backoff: float = HTTP_BACKOFF_FACTOR
    tile_api_version: str = AZURE_TILE_API_VERSION
    static_api_version: str = AZURE_STATIC_API_VERSION
    # Стиль по умолчанию
    style: MapStyle = default_map_style()
    # Куда складывать выгруженные PNG
    output_dir: str = '.'
    # Кэшировать тайлы в SQLite
    http_cache: bool = HTTP_CACHE_ENABLED

    @field_validator('tile_size')
    @classmethod
    def validate_tile_size(cls, v: int) -> int:
        v = int(v)
        if v not in ALLOWED_TILE_SIZES:
            msg = f'tile_size должен быть одним из {ALLOWED_TILE_SIZES}'
            raise ValueError(msg)
        return v

    @field_validator('max_tiles', 'concurrency', 'retries')
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        v = int(v)
        if v < 1:
            msg = 'Значение должно быть не меньше 1'
            raise ValueError(msg)
        return v

    @field_validator('timeout_s', 'backoff')
    @classmethod
    def validate_positive_float(cls, v: float) -> float:
        v = float(v)
        if v <= 0:
            msg = 'Значение должно быть положительным'
            raise ValueError(msg)
        return v

    @field_validator('style', mode='before')
    @classmethod
    def validate_style(cls, v: object) -> MapStyle:
        return resolve_map_style(v if isinstance(v, (str, MapStyle)) else None)


def default_profile_path() -> Path:
    """%APPDATA%/SurveyMapper/settings.toml или ~/.config/survey_mapper/settings.toml."""
    appdata = os.getenv('APPDATA')
    if appdata:
        return Path(appdata) / 'SurveyMapper' / 'settings.toml'
    return Path.home() / '.config' / 'survey_mapper' / 'settings.toml'


def load_settings(path: str | Path | None = None) -> ExportSettings:
    """
    Загрузка и валидация профиля TOML -> ExportSettings.

    Если файла нет, возвращаются настройки по умолчанию.
    """
    p = Path(path) if path is not None else default_profile_path()
    if not p.exists():
        logger.info('Settings profile %s not found, using defaults', p)
        return ExportSettings()
    doc = tomlkit.parse(p.read_text(encoding='utf-8'))
    data: dict[str, Any] = doc.unwrap()
    section = data.get(PROFILE_SECTION, data)
    return ExportSettings.model_validate(section)


def save_settings(settings: ExportSettings, path: str | Path | None = None) -> Path:
    """Сохранение профиля в TOML (секция [export])."""
    p = Path(path) if path is not None else default_profile_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    doc = tomlkit.document()
    section = tomlkit.table()
    for key, value in settings.model_dump(mode='json').items():
        section.add(key, value)
    doc.add(PROFILE_SECTION, section)
    p.write_text(tomlkit.dumps(doc), encoding='utf-8')
    return p
