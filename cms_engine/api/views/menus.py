"""
Menu, menu item and menu location endpoints.
"""
from django.db import transaction

from ...middleware import get_request_site
from ...models import Menu, MenuItem, MenuItemMeta, MenuLocation
from ...navigation import build_menu_tree, get_menu_by_location, reorder_menu_items, resolve_menu_items
from ..base import ApiView
from ..response import ApiError, api_success
from ..serializers import serialize_menu, serialize_menu_item, serialize_menu_location
from ..validation import parse_bool, parse_int, require_fields, validate_choice, validate_slug

ITEM_TYPES = [choice for choice, _ in MenuItem.TYPE_CHOICES]
TARGETS = [choice for choice, _ in MenuItem.TARGET_CHOICES]


class MenuMixin:

    def get_menu(self, pk):
        return self.get_site_object(Menu.objects.select_related("location"), pk, "Menu")

    def get_location(self, name):
        if not name:
            return None
        location = MenuLocation.objects.filter(site=self.site, name=name).first()
        if location is None:
            raise ApiError.validation(f"Unknown menu location: {name}", "location")
        return location

    def apply_menu_data(self, menu, data):
        if data.get("name"):
            name = validate_slug(data["name"], "name")
            if Menu.objects.filter(site=self.site, name=name).exclude(pk=menu.pk).exists():
                raise ApiError.conflict(f"Menu with name '{name}' already exists")
            menu.name = name
        if "display_name" in data:
            menu.display_name = data["display_name"] or menu.name
        elif not menu.display_name:
            menu.display_name = menu.name
        if "description" in data:
            menu.description = data["description"] or ""
        if "location" in data:
            location = self.get_location(data["location"])
            if location is not None:
                # A location holds one menu; take it over
                Menu.objects.filter(location=location).exclude(pk=menu.pk).update(location=None)
            menu.location = location


class MenuCollectionView(MenuMixin, ApiView):
    """List and create menus."""

    def get(self, request):
        menus = Menu.objects.filter(site=self.site).select_related("location")
        with_items = "items" in request.GET.get("include", "")
        return api_success([serialize_menu(menu, items=with_items) for menu in menus])

    def post(self, request):
        self.require_permission("manage_menus")
        data = self.get_data()
        require_fields(data, ["name"])
        menu = Menu(site=self.site)
        with transaction.atomic():
            self.apply_menu_data(menu, data)
            menu.save()
        self.log("menu_create", menu)
        return api_success(serialize_menu(menu, items=True), status=201)


class MenuDetailView(MenuMixin, ApiView):
    """Read, update or delete a menu."""

    def get(self, request, pk):
        return api_success(serialize_menu(self.get_menu(pk), items=True))

    def put(self, request, pk):
        self.require_permission("manage_menus")
        menu = self.get_menu(pk)
        with transaction.atomic():
            self.apply_menu_data(menu, self.get_data())
            menu.save()
        self.log("menu_update", menu)
        return api_success(serialize_menu(menu, items=True))

    patch = put

    def delete(self, request, pk):
        self.require_permission("manage_menus")
        menu = self.get_menu(pk)
        name = menu.name
        menu.delete()
        self.log("menu_delete", entity_type="menu", entity_id=pk, entity_name=name)
        return api_success({"id": pk, "deleted": True})


class MenuItemMixin(MenuMixin):

    def apply_item_data(self, menu, item, data):
        if "item_type" in data:
            item.item_type = validate_choice(data["item_type"], "item_type", ITEM_TYPES)
        for field in ("custom_url", "custom_label", "title_attr", "css_classes", "xfn", "description"):
            if field in data:
                setattr(item, field, data[field] or "")
        if "target" in data:
            item.target = validate_choice(data["target"], "target", TARGETS)
        if "menu_order" in data:
            item.menu_order = parse_int(data["menu_order"], "menu_order") or 0
        if "object_id" in data:
            item.object_id = parse_int(data["object_id"], "object_id")
        if "parent_id" in data:
            parent_id = parse_int(data["parent_id"], "parent_id")
            if parent_id is not None:
                if parent_id == item.pk or not menu.items.filter(pk=parent_id).exists():
                    raise ApiError.validation("Parent item must belong to the same menu", "parent_id")
            item.parent_id = parent_id

        if item.item_type == MenuItem.TYPE_CUSTOM:
            if not item.custom_url:
                raise ApiError.validation("custom_url is required for custom menu items", "custom_url")
            if not item.custom_label:
                raise ApiError.validation("custom_label is required for custom menu items", "custom_label")
            item.object_id = None
        else:
            if item.object_id is None:
                raise ApiError.validation("object_id is required for non-custom menu items", "object_id")
            model = item.get_target_model()
            if not model.objects.filter(site=self.site, pk=item.object_id).exists():
                raise ApiError.validation(f"{item.item_type} {item.object_id} not found", "object_id")

    def save_item_meta(self, item, data):
        meta = data.get("meta")
        if meta is None:
            return
        if not isinstance(meta, dict):
            raise ApiError.validation("meta must be an object", "meta")
        for key, value in meta.items():
            MenuItemMeta.objects.update_or_create(item=item, key=key, defaults={"value": str(value)})


class MenuItemCollectionView(MenuItemMixin, ApiView):
    """
    List or add items of a menu.

    ?resolved=true returns the rendered tree (urls and labels) instead of
    the raw rows.
    """

    def get(self, request, pk):
        menu = self.get_menu(pk)
        if parse_bool(request.GET.get("resolved", False)):
            items = resolve_menu_items(menu)
            return api_success([item.as_dict() for item in build_menu_tree(items)])
        items = menu.items.prefetch_related("meta").order_by("menu_order", "id")
        return api_success([serialize_menu_item(item) for item in items])

    def post(self, request, pk):
        self.require_permission("manage_menus")
        menu = self.get_menu(pk)
        data = self.get_data()
        require_fields(data, ["item_type"])
        item = MenuItem(menu=menu)
        if "menu_order" not in data:
            last = menu.items.order_by("-menu_order").first()
            item.menu_order = last.menu_order + 1 if last else 0
        with transaction.atomic():
            self.apply_item_data(menu, item, data)
            item.save()
            self.save_item_meta(item, data)
        menu.save(update_fields=["updated_at"])
        self.log("menu_update", menu, details=f"Added item {item.pk}")
        return api_success(serialize_menu_item(item), status=201)


class MenuItemReorderView(MenuMixin, ApiView):
    """Apply a new order and nesting: {"items": [{"id", "menu_order", "parent_id"}, ...]}."""

    def post(self, request, pk):
        self.require_permission("manage_menus")
        menu = self.get_menu(pk)
        entries = self.get_data().get("items")
        if not isinstance(entries, list):
            raise ApiError.bad_request("Request body must contain an items array")
        for entry in entries:
            if not isinstance(entry, dict) or "id" not in entry:
                raise ApiError.validation("Each item needs an id", "items")
            parse_int(entry["id"], "id", required=True)
            parse_int(entry.get("menu_order"), "menu_order")
            parse_int(entry.get("parent_id"), "parent_id")
        try:
            items = reorder_menu_items(menu, entries)
        except MenuItem.DoesNotExist as exc:
            raise ApiError.validation(str(exc), "items")
        menu.save(update_fields=["updated_at"])
        self.log("menu_update", menu, details="Reordered items")
        return api_success([serialize_menu_item(item) for item in items.prefetch_related("meta")])

    put = post


class MenuItemDetailView(MenuItemMixin, ApiView):
    """Read, update or delete one menu item."""

    def get_item(self, pk, item_id):
        menu = self.get_menu(pk)
        item = menu.items.filter(pk=item_id).first()
        if item is None:
            raise ApiError.not_found("Menu item", item_id)
        return menu, item

    def get(self, request, pk, item_id):
        _, item = self.get_item(pk, item_id)
        return api_success(serialize_menu_item(item))

    def put(self, request, pk, item_id):
        self.require_permission("manage_menus")
        menu, item = self.get_item(pk, item_id)
        data = self.get_data()
        with transaction.atomic():
            self.apply_item_data(menu, item, data)
            item.save()
            self.save_item_meta(item, data)
        self.log("menu_update", menu, details=f"Updated item {item.pk}")
        return api_success(serialize_menu_item(item))

    patch = put

    def delete(self, request, pk, item_id):
        self.require_permission("manage_menus")
        menu, item = self.get_item(pk, item_id)
        if item.children.exists():
            raise ApiError.bad_request(
                "Cannot delete menu item with children. Delete or reassign child items first."
            )
        item.delete()
        self.log("menu_update", menu, details=f"Deleted item {item_id}")
        return api_success({"id": item_id, "deleted": True})


class MenuLocationCollectionView(ApiView):
    """List and create menu locations."""

    def get(self, request):
        locations = MenuLocation.objects.filter(site=self.site).select_related("menu")
        return api_success([serialize_menu_location(location) for location in locations])

    def post(self, request):
        self.require_permission("manage_menus")
        data = self.get_data()
        require_fields(data, ["name"])
        name = validate_slug(data["name"], "name")
        if MenuLocation.objects.filter(site=self.site, name=name).exists():
            raise ApiError.duplicate("name", name)
        location = MenuLocation.objects.create(
            site=self.site,
            name=name,
            display_name=data.get("display_name") or name.replace("-", " ").title(),
            description=data.get("description", ""),
        )
        return api_success(serialize_menu_location(location), status=201)


class MenuLocationDetailView(ApiView):
    """Update or delete a menu location."""

    def put(self, request, pk):
        self.require_permission("manage_menus")
        location = self.get_site_object(MenuLocation.objects.all(), pk, "Menu location")
        data = self.get_data()
        if data.get("display_name"):
            location.display_name = data["display_name"]
        if "description" in data:
            location.description = data["description"] or ""
        location.save()
        return api_success(serialize_menu_location(location))

    patch = put

    def delete(self, request, pk):
        self.require_permission("manage_menus")
        location = self.get_site_object(MenuLocation.objects.all(), pk, "Menu location")
        location.delete()
        return api_success({"id": pk, "deleted": True})


class PublicMenuView(ApiView):
    """
    Rendered menu for a theme location.

    Open to anonymous callers; the site comes from the credentials, the
    X-Site-ID header or the request host.
    """

    auth_required = False
    site_required = False

    def get(self, request, location):
        site = self.site or get_request_site(request)
        if not site:
            raise ApiError.bad_request("No site selected. Send an X-Site-ID header.")
        menu, items = get_menu_by_location(site, location)
        if menu is None:
            raise ApiError.not_found("Menu", location)
        data = serialize_menu(menu)
        data["items"] = [item.as_dict() for item in build_menu_tree(items)]
        return api_success(data)
