"""
Menu resolution helpers.
"""
import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from .models import Menu, MenuItem

logger = logging.getLogger(__name__)


class ResolvedMenuItem:
    """Menu item with its link target resolved for rendering."""

    def __init__(self, item, url, label, meta=None):
        self.item = item
        self.id = item.pk
        self.parent_id = item.parent_id
        self.url = url
        self.label = label
        self.target = item.target
        self.title_attr = item.title_attr
        self.css_classes = item.css_classes
        self.xfn = item.xfn
        self.description = item.description
        self.meta = meta or {}
        self.children = []

    def __repr__(self):
        return f"<ResolvedMenuItem {self.label!r} -> {self.url}>"

    def as_dict(self):
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "url": self.url,
            "label": self.label,
            "target": self.target,
            "title_attr": self.title_attr,
            "css_classes": self.css_classes,
            "xfn": self.xfn,
            "description": self.description,
            "meta": self.meta,
            "children": [child.as_dict() for child in self.children],
        }


def _load_targets(items):
    """Bulk-load the objects menu items point at, keyed by (type, id)."""
    wanted = {}
    for item in items:
        model = item.get_target_model()
        if model is not None and item.object_id is not None:
            wanted.setdefault(item.item_type, (model, set()))[1].add(item.object_id)

    targets = {}
    for item_type, (model, ids) in wanted.items():
        queryset = model.objects.filter(pk__in=ids)
        if item_type == MenuItem.TYPE_POST:
            queryset = queryset.select_related("post_type", "parent")
        elif item_type == MenuItem.TYPE_TERM:
            queryset = queryset.select_related("taxonomy")
        for obj in queryset:
            targets[(item_type, obj.pk)] = obj
    return targets


def resolve_menu_items(menu):
    """
    Return a flat, ordered list of ResolvedMenuItem for a menu.

    Items whose target no longer exists are skipped.
    """
    items = list(menu.items.prefetch_related("meta").order_by("menu_order", "id"))
    targets = _load_targets(items)

    resolved = []
    for item in items:
        target = None
        if item.item_type != MenuItem.TYPE_CUSTOM:
            target = targets.get((item.item_type, item.object_id))
            if target is None or target.site_id != menu.site_id:
                logger.debug("Skipping menu item %s: target missing", item.pk)
                continue
        meta = {entry.key: entry.value for entry in item.meta.all()}
        resolved.append(ResolvedMenuItem(item, item.resolve_url(target), item.resolve_label(target), meta))
    return resolved


def build_menu_tree(items):
    """
    Nest a flat list of resolved items under their parents.

    Items whose parent is missing from the list become roots.
    """
    by_id = {item.id: item for item in items}
    roots = []
    for item in items:
        item.children = []
    for item in items:
        parent = by_id.get(item.parent_id)
        if parent is not None and parent is not item:
            parent.children.append(item)
        else:
            roots.append(item)
    return roots


def get_menu_by_location(site, location):
    """
    Return (menu, resolved items) for a site's menu location.

    Returns (None, []) when no menu is assigned to the location.
    """
    menu = Menu.objects.filter(site=site, location__name=location).first()
    if menu is None:
        return None, []
    return menu, resolve_menu_items(menu)


def reorder_menu_items(menu, ordering):
    """
    Apply a new order and nesting to a menu's items.

    Args:
        menu: Menu instance
        ordering: iterable of dicts {"id", "menu_order", "parent_id"}

    Raises:
        MenuItem.DoesNotExist: if an id does not belong to the menu
        ValidationError: if the new parents form a cycle
    """
    items = {item.pk: item for item in menu.items.all()}
    with transaction.atomic():
        for entry in ordering:
            item = items.get(int(entry["id"]))
            if item is None:
                raise MenuItem.DoesNotExist(f"Menu item {entry['id']} is not in menu {menu.pk}")
            parent_id = entry.get("parent_id")
            if parent_id is not None:
                parent_id = int(parent_id)
                if parent_id not in items or parent_id == item.pk:
                    raise MenuItem.DoesNotExist(f"Menu item {parent_id} is not in menu {menu.pk}")
            item.menu_order = int(entry.get("menu_order", item.menu_order))
            item.parent_id = parent_id
            item.save(update_fields=["menu_order", "parent", "updated_at"])
        for item in items.values():
            seen = {item.pk}
            parent_id = item.parent_id
            while parent_id is not None:
                if parent_id in seen:
                    raise ValidationError({"parent_id": "Menu items cannot be nested inside themselves."})
                seen.add(parent_id)
                parent_id = items[parent_id].parent_id if parent_id in items else None
    return menu.items.order_by("menu_order", "id")
