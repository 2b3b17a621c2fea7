"""
Middleware attaching the current site to each request.

Add after SessionMiddleware:

    MIDDLEWARE = [
        ...
        'django.contrib.sessions.middleware.SessionMiddleware',
        'cms_engine.middleware.CurrentSiteMiddleware',
        ...
    ]
"""
from django.utils.functional import SimpleLazyObject

from .conf import cms_settings
from .models import Site


def _site_by_id(value):
    try:
        site_id = int(value)
    except (TypeError, ValueError):
        return None
    return Site.objects.filter(pk=site_id, is_active=True).first()


def get_current_site(request):
    """
    Determine the site for a request.

    Checks the X-Site-ID header, then the request host, then the session,
    then falls back to the DEFAULT_SITE. Returns None if nothing matches.
    """
    site = _site_by_id(request.META.get(cms_settings.SITE_HEADER))
    if site:
        return site

    host = request.get_host().split(":")[0].lower()
    site = Site.objects.filter(domain__iexact=host, is_active=True).first()
    if site:
        return site

    session = getattr(request, "session", None)
    if session is not None:
        site = _site_by_id(session.get(cms_settings.SITE_SESSION_KEY))
        if site:
            return site

    return Site.objects.filter(name=cms_settings.DEFAULT_SITE, is_active=True).first() or (
        Site.objects.filter(is_active=True).order_by("id").first()
    )


def get_request_site(request):
    """Return the request's site, or None when no site could be determined."""
    site = getattr(request, "site", None)
    if site is None:
        site = get_current_site(request)
    return site if site else None


class CurrentSiteMiddleware:
    """Set request.site lazily so requests that never use it skip the lookup."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.site = SimpleLazyObject(lambda: get_current_site(request))
        return self.get_response(request)
