"""Standard (single image) export through the Azure Maps static image API."""

from __future__ import annotations

import logging
from http import HTTPStatus

import aiohttp

from domain.errors import NetworkError
from domain.models import StaticExportRequest
from shared.constants import (
    AZURE_MAPS_STATIC_URL,
    AZURE_STATIC_API_VERSION,
    HTTP_TIMEOUT_DEFAULT,
    STATIC_IMAGE_SIZE_PX,
    STATIC_LAYER,
    azure_style_name,
)
from tiles.fetcher import release_response

logger = logging.getLogger(__name__)


def static_request_params(
    request: StaticExportRequest,
    api_key: str,
    *,
    api_version: str = AZURE_STATIC_API_VERSION,
) -> dict[str, str]:
    lng, lat = request.center
    return {
        'subscription-key': api_key,
        'api-version': api_version,
        'layer': STATIC_LAYER,
        'style': azure_style_name(request.map_type),
        'zoom': str(request.zoom),
        'center': f'{lng},{lat}',
        'width': str(STATIC_IMAGE_SIZE_PX),
        'height': str(STATIC_IMAGE_SIZE_PX),
    }


async def fetch_static_image(
    client: aiohttp.ClientSession,
    api_key: str,
    request: StaticExportRequest,
    *,
    api_version: str = AZURE_STATIC_API_VERSION,
    timeout_s: float = HTTP_TIMEOUT_DEFAULT,
) -> bytes:
    """PNG 1280x1280 вокруг центра; при ошибке сервиса NetworkError."""
    params = static_request_params(request, api_key, api_version=api_version)
    timeout = aiohttp.ClientTimeout(total=timeout_s)
    try:
        resp = await client.get(AZURE_MAPS_STATIC_URL, params=params, timeout=timeout)
        try:
            if resp.status != HTTPStatus.OK:
                msg = f'Azure Maps API error: {resp.status}'
                raise NetworkError(msg)
            return await resp.read()
        finally:
            release_response(resp)
    except (TimeoutError, aiohttp.ClientError) as e:
        logger.warning('Static image request failed: %s', e)
        msg = f'Azure Maps API unreachable: {e}'
        raise NetworkError(msg, e) from e
