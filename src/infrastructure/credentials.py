"""Загрузка ключа подписки Azure Maps из окружения (.env/.secrets.env)."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from domain.errors import ConfigurationError
from shared.constants import SUBSCRIPTION_KEY_ENV, SUBSCRIPTION_KEY_ENV_FALLBACK

logger = logging.getLogger(__name__)


def _env_candidates() -> list[Path]:
    cwd = Path.cwd()
    # Корень проекта при запуске из исходников
    repo_root = Path(__file__).resolve().parent.parent.parent
    return [
        cwd / '.secrets.env',
        cwd / '.env',
        repo_root / '.secrets.env',
        repo_root / '.env',
    ]


def load_env_files(candidates: list[Path] | None = None) -> Path | None:
    """Подгружает первый найденный .env; уже заданные переменные не перезаписываются."""
    for p in candidates if candidates is not None else _env_candidates():
        if p.is_file():
            load_dotenv(p, override=False)
            logger.debug('Loaded environment from %s', p)
            return p
    return None


def get_subscription_key() -> str | None:
    for name in (SUBSCRIPTION_KEY_ENV, SUBSCRIPTION_KEY_ENV_FALLBACK):
        value = os.getenv(name, '').strip()
        if value:
            return value
    return None


def load_subscription_key(*, load_env: bool = True) -> str:
    """Ключ подписки или ConfigurationError, если он не настроен."""
    if load_env:
        load_env_files()
    key = get_subscription_key()
    if not key:
        logger.error('Subscription key not found in %s', SUBSCRIPTION_KEY_ENV)
        msg = 'API key missing'
        raise ConfigurationError(msg)
    return key
