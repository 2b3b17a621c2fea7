"""
Configuration settings for django-cms-engine.

Override these in your Django settings.py:

    CMS_ENGINE = {
        'DEFAULT_SITE': 'default',
        'POSTS_PER_PAGE': 10,
        'JWT_ACCESS_TTL': timedelta(minutes=30),
        ...
    }

To attach to tables created by an earlier deployment, use:

    CMS_ENGINE = {
        'TABLE_PREFIX': 'nextcms',  # uses nextcms_post, nextcms_term, etc.
    }
"""
from datetime import timedelta

from django.conf import settings

DEFAULTS = {
    # Existing table support
    "TABLE_PREFIX": None,

    # Sites
    "DEFAULT_SITE": "default",
    "SITE_HEADER": "HTTP_X_SITE_ID",
    "SITE_SESSION_KEY": "cms_site_id",
    "AUTO_INITIALIZE_SITES": True,

    # Content
    "POSTS_PER_PAGE": 10,
    "SLUG_MAX_LENGTH": 100,
    "HIERARCHY_MAX_DEPTH": 10,
    "URL_STRUCTURES": [
        ("default", "/%slug%"),
        ("year", "/%year%/%slug%"),
        ("year_month", "/%year%/%month%/%slug%"),
        ("year_month_day", "/%year%/%month%/%day%/%slug%"),
    ],

    # Media
    "MEDIA_UPLOAD_PATH": "cms/site_{site_id}/%Y/%m/",
    "MEDIA_MAX_SIZE_MB": 50,
    "ALLOWED_UPLOAD_TYPES": [
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "video/mp4",
        "video/webm",
        "audio/mpeg",
        "application/pdf",
    ],
    "GENERATE_IMAGE_SIZES": True,
    "IMAGE_SIZES": {
        "thumbnail": (150, 150),
        "medium": (300, 300),
        "large": (1024, 1024),
    },

    # REST API
    "API_DEFAULT_PER_PAGE": 10,
    "API_MAX_PER_PAGE": 100,
    "API_RATE_LIMIT": 100,
    "API_RATE_LIMIT_WINDOW": 60,
    "CORS_ORIGIN": "*",
    "CRON_SECRET": None,

    # Tokens
    "JWT_SECRET": None,
    "JWT_ALGORITHM": "HS256",
    "JWT_ACCESS_TTL": timedelta(hours=1),
    "JWT_REFRESH_TTL": timedelta(days=7),
    "JWT_ISSUER": "cms-engine-api",
    "JWT_AUDIENCE": "cms-engine",

    # Authentication
    "PASSWORD_REQUIREMENTS": {
        "min_length": 8,
        "require_uppercase": True,
        "require_lowercase": True,
        "require_numbers": True,
        "require_special": True,
    },

    # Navigation
    "MENU_LOCATIONS": [
        ("primary", "Primary Menu"),
        ("footer", "Footer Menu"),
    ],
}


class CmsEngineSettings:
    """
    Lazy settings object that reads from Django settings.

    Access via: from cms_engine.conf import cms_settings
    """

    def __getattr__(self, name):
        if name not in DEFAULTS:
            raise AttributeError(f"Invalid cms_engine setting: {name}")

        user_settings = getattr(settings, "CMS_ENGINE", {})
        return user_settings.get(name, DEFAULTS[name])

    @property
    def JWT_SECRET(self):
        """Return the token signing key, falling back to SECRET_KEY."""
        user_settings = getattr(settings, "CMS_ENGINE", {})
        return user_settings.get("JWT_SECRET") or settings.SECRET_KEY


cms_settings = CmsEngineSettings()


def get_site_prefix(site_id):
    """Return the storage namespace prefix for a site (e.g. 'site_3_')."""
    return f"site_{site_id}_"


def get_site_namespace(site_id, name):
    """
    Return a per-site namespaced name.

    Used for cache keys and media storage so that sites never share
    state, e.g. get_site_namespace(3, 'posts') -> 'site_3_posts'.
    """
    return f"{get_site_prefix(site_id)}{name}"


def get_table_name(model_name):
    """
    Get the database table name for a model.

    If TABLE_PREFIX is set, returns the prefixed table name
    (e.g., 'nextcms_post' instead of 'cms_engine_post').

    Args:
        model_name: lowercase model name (e.g., 'post', 'term')

    Returns:
        Table name string
    """
    prefix = cms_settings.TABLE_PREFIX
    if prefix:
        return f"{prefix}_{model_name}"
    return f"cms_engine_{model_name}"


def configure_table_prefix():
    """
    Point cms_engine models at prefixed tables.

    Called from AppConfig.ready(). When TABLE_PREFIX is set, every model's
    _meta.db_table is rewritten and the model is marked unmanaged so that
    migrations never touch the existing tables.
    """
    if not cms_settings.TABLE_PREFIX:
        return

    from django.apps import apps

    for model_class in apps.get_app_config("cms_engine").get_models():
        model_class._meta.db_table = get_table_name(model_class._meta.model_name)
        model_class._meta.managed = False

        # Auto-created M2M through-tables follow their owner
        for field in model_class._meta.local_many_to_many:
            through_model = field.remote_field.through
            if through_model._meta.auto_created:
                through_model._meta.db_table = get_table_name(
                    f"{model_class._meta.model_name}_{field.name}"
                )
                through_model._meta.managed = False
