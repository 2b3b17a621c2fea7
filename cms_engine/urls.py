"""
URL configuration for django-cms-engine.

Include at the root of your project urls.py, after anything else:

    path('', include('cms_engine.urls')),

The last pattern is a catch-all for permalinks.
"""
from django.urls import include, path, re_path

from . import views
from .feeds import LatestPostsFeed

app_name = "cms_engine"

urlpatterns = [
    # REST API
    path("api/v1/", include("cms_engine.api.urls")),

    # Feed
    path("feed/", LatestPostsFeed(), name="feed"),

    # Home
    path("", views.HomeView.as_view(), name="home"),

    # Taxonomy, term and post type archives, posts and pages
    re_path(r"^(?P<path>.+?)/?$", views.PathResolveView.as_view(), name="resolve_path"),
]
