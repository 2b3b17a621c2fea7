"""Django app configuration for cms_engine."""
from django.apps import AppConfig


class CmsEngineConfig(AppConfig):
    """Configuration for the CMS engine app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "cms_engine"
    verbose_name = "CMS Engine"

    def ready(self):
        """Configure app when ready."""
        from . import signals  # noqa: F401

        # Attach to pre-existing tables if a prefix is configured
        from .conf import configure_table_prefix
        configure_table_prefix()
