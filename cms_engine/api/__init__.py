"""
REST API v1 for django-cms-engine.

Mounted at api/v1/ by cms_engine.urls.
"""
API_VERSION = "v1"
