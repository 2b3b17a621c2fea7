"""
Fixed-window rate limiting backed by the Django cache.
"""
import time

from django.core.cache import cache

from ..activity import get_client_ip
from ..conf import cms_settings

RATE_KEY = "cms_engine_rate_{}_{}"


def get_client_identifier(request, auth=None):
    """Identify the caller: user id when authenticated, else client IP."""
    if auth is not None:
        return f"user:{auth.user.pk}"
    return f"ip:{get_client_ip(request) or 'unknown'}"


def check_rate_limit(identifier, limit=None, window=None, now=None):
    """
    Count a request against the caller's window.

    Returns:
        (allowed, remaining, retry_after seconds)
    """
    limit = limit or cms_settings.API_RATE_LIMIT
    window = window or cms_settings.API_RATE_LIMIT_WINDOW
    now = now or time.time()
    window_start = int(now // window)
    key = RATE_KEY.format(identifier, window_start)

    # add() is a no-op when the key exists, so the first request sets it
    cache.add(key, 0, timeout=window)
    try:
        count = cache.incr(key)
    except ValueError:
        cache.set(key, 1, timeout=window)
        count = 1

    retry_after = int((window_start + 1) * window - now) or 1
    return count <= limit, max(limit - count, 0), retry_after
