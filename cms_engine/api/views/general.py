"""
API index and health check.
"""
from django.db import DatabaseError, connection

from ... import __version__
from .. import API_VERSION
from ..base import ApiView
from ..response import ApiError, api_success

ENDPOINTS = {
    "auth": ["login", "logout", "me", "refresh", "switch-site"],
    "content": ["posts", "post-types", "taxonomies", "terms"],
    "media": ["media", "media/folders"],
    "navigation": ["menus", "menu-locations", "menus/location/{name}"],
    "administration": ["settings/site", "settings/global", "sites", "users", "roles", "activity"],
    "tools": ["export", "import", "posts/process-scheduled"],
}


class ApiIndexView(ApiView):
    """Describe the API and its endpoint groups."""

    auth_required = False
    site_required = False

    def get(self, request):
        base = request.build_absolute_uri(request.path).rstrip("/")
        return api_success({
            "version": API_VERSION,
            "engine_version": __version__,
            "status": "active",
            "endpoints": {
                group: [f"{base}/{name}" for name in names]
                for group, names in ENDPOINTS.items()
            },
        })


class HealthView(ApiView):
    """Report whether the database is reachable."""

    auth_required = False
    site_required = False
    throttle = False

    def get(self, request):
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
        except DatabaseError:
            raise ApiError("SERVICE_UNAVAILABLE", "Database unavailable", 503)
        return api_success({"status": "healthy", "database": "connected"})
