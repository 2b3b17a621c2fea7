"""
django-cms-engine - A multi-site Django content engine.

Features:
- Multiple independent sites in one deployment
- Configurable post types with date-based or hierarchical permalinks
- Hierarchical and flat taxonomies
- Content-addressed media library with generated image sizes
- Navigation menus bound to named locations
- Global roles with per-site membership
- Versioned JSON REST API with JWT and API key authentication
- Revisions, autosave and scheduled publishing
- JSON / WordPress WXR export and JSON import
"""

__version__ = "0.1.0"
__author__ = "Nestor Wheelock"
