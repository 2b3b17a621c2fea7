"""
Default roles and per-site content seeding.

Both entry points are idempotent and safe to run repeatedly.
"""
import logging

from django.db import transaction

from .conf import cms_settings
from .models import MenuLocation, PostType, Role, Setting, Taxonomy

logger = logging.getLogger(__name__)

DEFAULT_ROLES = [
    {
        "name": "super_admin",
        "label": "Super Administrator",
        "description": "Full access to every site and deployment setting.",
        "permissions": {"manage_all": True},
    },
    {
        "name": "admin",
        "label": "Administrator",
        "description": "Manages content, users and settings of a site.",
        "permissions": {
            "manage_posts_all": True,
            "manage_pages_all": True,
            "manage_media": True,
            "manage_taxonomies": True,
            "manage_menus": True,
            "manage_settings": True,
            "manage_users": True,
        },
    },
    {
        "name": "editor",
        "label": "Editor",
        "description": "Publishes and manages everyone's content.",
        "permissions": {
            "manage_posts_all": True,
            "manage_pages_all": True,
            "manage_media": True,
            "manage_taxonomies": True,
        },
    },
    {
        "name": "author",
        "label": "Author",
        "description": "Publishes and manages their own content.",
        "permissions": {
            "manage_posts_own": True,
            "manage_pages_own": True,
            "manage_media_own": True,
        },
    },
    {
        "name": "contributor",
        "label": "Contributor",
        "description": "Writes posts for review but cannot publish.",
        "permissions": {
            "create_posts": True,
            "edit_posts_own": True,
        },
    },
    {
        "name": "subscriber",
        "label": "Subscriber",
        "description": "Can read content.",
        "permissions": {"read": True},
    },
    {
        "name": "guest",
        "label": "Guest",
        "description": "Can read their own profile.",
        "permissions": {"read_own": True},
    },
]

DEFAULT_POST_TYPES = [
    {
        "name": "post",
        "slug": "blog",
        "labels": {"singular_name": "Post", "plural_name": "Posts"},
        "description": "Blog posts",
        "hierarchical": False,
        "has_archive": True,
        "supports": ["title", "editor", "thumbnail", "excerpt", "comments", "author", "revisions"],
        "menu_icon": "file-text",
        "menu_position": 5,
    },
    {
        "name": "page",
        "slug": "",
        "labels": {"singular_name": "Page", "plural_name": "Pages"},
        "description": "Static pages",
        "hierarchical": True,
        "has_archive": False,
        "supports": ["title", "editor", "thumbnail", "page_attributes", "revisions"],
        "menu_icon": "file",
        "menu_position": 20,
    },
]

DEFAULT_TAXONOMIES = [
    {
        "name": "category",
        "slug": "category",
        "labels": {"singular_name": "Category", "plural_name": "Categories"},
        "hierarchical": True,
        "menu_position": 1,
        "post_types": ["post"],
    },
    {
        "name": "tag",
        "slug": "tag",
        "labels": {"singular_name": "Tag", "plural_name": "Tags"},
        "hierarchical": False,
        "menu_position": 2,
        "post_types": ["post"],
    },
]

# key, value, type, group, label, public
DEFAULT_SETTINGS = [
    ("site_title", None, "string", "general", "Site Title", True),
    ("site_description", None, "string", "general", "Tagline", True),
    ("homepage_type", "posts", "string", "reading", "Homepage Displays", True),
    ("homepage_page_id", "", "number", "reading", "Homepage", False),
    ("posts_per_page", cms_settings.POSTS_PER_PAGE, "number", "reading", "Posts Per Page", True),
    ("date_format", "F j, Y", "string", "general", "Date Format", True),
    ("time_format", "g:i a", "string", "general", "Time Format", True),
    ("timezone", "UTC", "string", "general", "Timezone", True),
    ("comments_enabled", True, "boolean", "discussion", "Allow Comments", True),
    ("comment_moderation", True, "boolean", "discussion", "Hold Comments For Moderation", False),
    ("media_thumbnail_width", 150, "number", "media", "Thumbnail Width", False),
    ("media_thumbnail_height", 150, "number", "media", "Thumbnail Height", False),
    ("media_medium_width", 300, "number", "media", "Medium Width", False),
    ("media_medium_height", 300, "number", "media", "Medium Height", False),
    ("media_large_width", 1024, "number", "media", "Large Width", False),
    ("media_large_height", 1024, "number", "media", "Large Height", False),
]


def create_default_roles():
    """Create the built-in roles that do not exist yet. Returns created count."""
    created = 0
    for role in DEFAULT_ROLES:
        _, was_created = Role.objects.get_or_create(
            name=role["name"],
            defaults={
                "label": role["label"],
                "description": role["description"],
                "permissions": role["permissions"],
                "is_system": True,
            },
        )
        created += was_created
    return created


@transaction.atomic
def initialize_site_defaults(site):
    """
    Seed a site with default post types, taxonomies, settings and menu locations.

    Existing rows are left untouched.
    """
    post_types = {}
    for defaults in DEFAULT_POST_TYPES:
        fields = dict(defaults)
        name = fields.pop("name")
        post_types[name], _ = PostType.objects.get_or_create(site=site, name=name, defaults=fields)

    for defaults in DEFAULT_TAXONOMIES:
        fields = dict(defaults)
        name = fields.pop("name")
        type_names = fields.pop("post_types")
        taxonomy, created = Taxonomy.objects.get_or_create(site=site, name=name, defaults=fields)
        if created:
            taxonomy.post_types.set([post_types[type_name] for type_name in type_names])

    for key, value, value_type, group, label, is_public in DEFAULT_SETTINGS:
        if Setting.objects.filter(site=site, key=key).exists():
            continue
        if key == "site_title":
            value = site.display_name
        elif key == "site_description":
            value = site.description
        Setting.set_value(site, key, value, value_type, group=group, label=label, is_public=is_public)

    for name, display_name in cms_settings.MENU_LOCATIONS:
        MenuLocation.objects.get_or_create(site=site, name=name, defaults={"display_name": display_name})

    logger.info("Initialized defaults for site %s", site.name)
