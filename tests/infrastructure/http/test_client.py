"""Tests for http_client module."""

import ssl
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from aiohttp_client_cache import CachedSession

from domain.errors import ConfigurationError, NetworkError
from infrastructure.http.client import (
    make_http_session,
    make_ssl_context,
    resolve_cache_dir,
    validate_subscription_key,
)


def _async_cm(value):
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=value)
    cm.__aexit__ = AsyncMock(return_value=False)
    return cm


def _session_with_status(status):
    resp = MagicMock()
    resp.status = status
    session = MagicMock()
    session.get = MagicMock(return_value=_async_cm(resp))
    return _async_cm(session), session


class TestResolveCacheDir:
    """Tests for resolve_cache_dir function."""

    def test_uses_localappdata(self, tmp_path, monkeypatch):
        monkeypatch.setenv('LOCALAPPDATA', str(tmp_path))
        assert resolve_cache_dir() == (tmp_path / 'SurveyMapper' / 'tiles').resolve()

    def test_uses_xdg_cache_home(self, tmp_path, monkeypatch):
        monkeypatch.delenv('LOCALAPPDATA', raising=False)
        monkeypatch.setenv('XDG_CACHE_HOME', str(tmp_path))
        assert resolve_cache_dir() == (tmp_path / 'SurveyMapper' / 'tiles').resolve()

    def test_fallback_to_home(self, monkeypatch):
        monkeypatch.delenv('LOCALAPPDATA', raising=False)
        monkeypatch.delenv('XDG_CACHE_HOME', raising=False)
        result = resolve_cache_dir()
        assert result == (Path.home() / '.survey_mapper_cache' / 'tiles').resolve()


def test_ssl_context():
    assert isinstance(make_ssl_context(), ssl.SSLContext)


class TestMakeHttpSession:
    @pytest.mark.asyncio
    async def test_cached_session(self, tmp_path):
        session = make_http_session(tmp_path / 'cache')
        try:
            assert isinstance(session, CachedSession)
            assert (tmp_path / 'cache').is_dir()
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_plain_session_without_cache(self, tmp_path):
        session = make_http_session(tmp_path, use_cache=False)
        try:
            assert isinstance(session, aiohttp.ClientSession)
            assert not isinstance(session, CachedSession)
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_no_cache_dir_means_plain_session(self):
        session = make_http_session(None)
        try:
            assert not isinstance(session, CachedSession)
        finally:
            await session.close()


class TestValidateSubscriptionKey:
    @pytest.mark.asyncio
    async def test_ok(self):
        session_cm, session = _session_with_status(200)
        with patch('infrastructure.http.client.aiohttp.ClientSession', return_value=session_cm):
            await validate_subscription_key('key')
        params = session.get.call_args.kwargs['params']
        assert (params['zoom'], params['x'], params['y']) == ('0', '0', '0')
        assert params['subscription-key'] == 'key'

    @pytest.mark.asyncio
    @pytest.mark.parametrize('status', [401, 403])
    async def test_invalid_key(self, status):
        session_cm, _ = _session_with_status(status)
        with patch('infrastructure.http.client.aiohttp.ClientSession', return_value=session_cm):
            with pytest.raises(ConfigurationError):
                await validate_subscription_key('bad')

    @pytest.mark.asyncio
    async def test_server_error(self):
        session_cm, _ = _session_with_status(503)
        with patch('infrastructure.http.client.aiohttp.ClientSession', return_value=session_cm):
            with pytest.raises(NetworkError, match='HTTP 503'):
                await validate_subscription_key('key')

    @pytest.mark.asyncio
    async def test_unreachable(self):
        session_cm, session = _session_with_status(200)
        session.get = MagicMock(side_effect=aiohttp.ClientOSError('no route'))
        with patch('infrastructure.http.client.aiohttp.ClientSession', return_value=session_cm):
            with pytest.raises(NetworkError) as exc:
                await validate_subscription_key('key')
        assert isinstance(exc.value.cause, aiohttp.ClientOSError)
