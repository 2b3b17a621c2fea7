"""
Models for django-cms-engine.

All models are importable from cms_engine.models:

    from cms_engine.models import Site, Post, Term, Media, Menu
"""
from .sites import Site, Role, SiteUser, UserMeta, GlobalSetting, ApiKey
from .content import PostType, Post, PostMeta, PostRevision
from .taxonomy import Taxonomy, Term, PostTerm
from .media import MediaFolder, Media
from .menus import MenuLocation, Menu, MenuItem, MenuItemMeta
from .options import Setting
from .activity import ActivityLog

__all__ = [
    # Sites
    "Site",
    "Role",
    "SiteUser",
    "UserMeta",
    "GlobalSetting",
    "ApiKey",
    # Content
    "PostType",
    "Post",
    "PostMeta",
    "PostRevision",
    # Taxonomy
    "Taxonomy",
    "Term",
    "PostTerm",
    # Media
    "MediaFolder",
    "Media",
    # Navigation
    "MenuLocation",
    "Menu",
    "MenuItem",
    "MenuItemMeta",
    # Options
    "Setting",
    # Activity
    "ActivityLog",
]
