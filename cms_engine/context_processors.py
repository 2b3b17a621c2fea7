"""
Template context processors for django-cms-engine.

    TEMPLATES = [{
        ...
        'OPTIONS': {
            'context_processors': [
                ...
                'cms_engine.context_processors.site',
            ],
        },
    }]
"""
from .middleware import get_request_site


def site(request):
    """Expose the current site, its title and its tagline."""
    current = get_request_site(request)
    if current is None:
        return {"site": None, "site_title": "", "site_description": ""}
    return {
        "site": current,
        "site_title": current.get_setting("site_title") or current.display_name,
        "site_description": current.get_setting("site_description") or current.description,
    }
