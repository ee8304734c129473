"""HTTP client infrastructure."""
from infrastructure.http.client import (
    make_http_session,
    make_ssl_context,
    resolve_cache_dir,
    validate_subscription_key,
)

__all__ = [
    'make_http_session',
    'make_ssl_context',
    'resolve_cache_dir',
    'validate_subscription_key',
]
