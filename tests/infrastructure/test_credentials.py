"""Tests for subscription key loading."""

import os

import pytest

from domain.errors import ConfigurationError
from infrastructure.credentials import (
    get_subscription_key,
    load_env_files,
    load_subscription_key,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv('AZURE_MAPS_SUBSCRIPTION_KEY', raising=False)
    monkeypatch.delenv('AZURE_MAPS_KEY', raising=False)


def test_primary_variable(monkeypatch):
    monkeypatch.setenv('AZURE_MAPS_SUBSCRIPTION_KEY', ' primary ')
    monkeypatch.setenv('AZURE_MAPS_KEY', 'legacy')
    assert get_subscription_key() == 'primary'


def test_fallback_variable(monkeypatch):
    monkeypatch.setenv('AZURE_MAPS_KEY', 'legacy')
    assert get_subscription_key() == 'legacy'


def test_missing_key_raises():
    with pytest.raises(ConfigurationError, match='API key missing'):
        load_subscription_key(load_env=False)


def test_env_file_loaded(tmp_path):
    env_file = tmp_path / '.env'
    env_file.write_text('AZURE_MAPS_SUBSCRIPTION_KEY=from-file\n', encoding='utf-8')
    try:
        assert load_env_files([tmp_path / '.secrets.env', env_file]) == env_file
        assert get_subscription_key() == 'from-file'
    finally:
        os.environ.pop('AZURE_MAPS_SUBSCRIPTION_KEY', None)


def test_env_file_does_not_override(tmp_path, monkeypatch):
    monkeypatch.setenv('AZURE_MAPS_SUBSCRIPTION_KEY', 'from-env')
    env_file = tmp_path / '.env'
    env_file.write_text('AZURE_MAPS_SUBSCRIPTION_KEY=from-file\n', encoding='utf-8')
    load_env_files([env_file])
    assert get_subscription_key() == 'from-env'


def test_no_env_files(tmp_path):
    assert load_env_files([tmp_path / 'missing.env']) is None
