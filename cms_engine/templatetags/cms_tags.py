"""
Template tags for django-cms-engine.

    {% load cms_tags %}
    {% cms_menu "primary" %}
"""
from django import template

from ..middleware import get_request_site
from ..navigation import build_menu_tree, get_menu_by_location

register = template.Library()


@register.inclusion_tag("cms_engine/menu.html", takes_context=True)
def cms_menu(context, location):
    """Render the menu assigned to a location of the current site."""
    site = context.get("site")
    if site is None and "request" in context:
        site = get_request_site(context["request"])
    if site is None:
        return {"menu": None, "items": [], "location": location}
    menu, items = get_menu_by_location(site, location)
    return {"menu": menu, "items": build_menu_tree(items), "location": location}
