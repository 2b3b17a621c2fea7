"""
Tests for menu resolution.
"""
import pytest
from django.core.exceptions import ValidationError

from cms_engine.models import Menu, MenuItem, MenuItemMeta, MenuLocation, Term
from cms_engine.navigation import (
    build_menu_tree,
    get_menu_by_location,
    reorder_menu_items,
    resolve_menu_items,
)


@pytest.fixture
def menu(site):
    """Create a menu assigned to the primary location."""
    location = MenuLocation.objects.get(site=site, name="primary")
    return Menu.objects.create(site=site, name="main", display_name="Main Menu", location=location)


class TestResolveMenuItems:
    """Tests for resolve_menu_items."""

    def test_resolves_targets(self, menu, published_post, category, post_type):
        """Test URLs and labels for every item type."""
        news = Term.objects.create(taxonomy=category, name="News")
        MenuItem.objects.create(menu=menu, custom_url="/contact", custom_label="Contact", menu_order=1)
        MenuItem.objects.create(menu=menu, item_type="post", object_id=published_post.pk, menu_order=2)
        MenuItem.objects.create(menu=menu, item_type="term", object_id=news.pk, menu_order=3)
        MenuItem.objects.create(menu=menu, item_type="post_type", object_id=post_type.pk, menu_order=4)
        MenuItem.objects.create(menu=menu, item_type="taxonomy", object_id=category.pk, menu_order=5)

        items = resolve_menu_items(menu)
        assert [(item.label, item.url) for item in items] == [
            ("Contact", "/contact"),
            ("Hello World", "/blog/hello-world"),
            ("News", "/category/news"),
            ("Posts", "/blog"),
            ("Categories", "/category"),
        ]

    def test_custom_label_overrides_title(self, menu, published_post):
        """Test that a custom label wins over the target's title."""
        MenuItem.objects.create(menu=menu, item_type="post", object_id=published_post.pk, custom_label="Welcome")
        assert resolve_menu_items(menu)[0].label == "Welcome"

    def test_missing_target_skipped(self, menu):
        """Test that items pointing at deleted objects are skipped."""
        MenuItem.objects.create(menu=menu, item_type="post", object_id=99999)
        MenuItem.objects.create(menu=menu, custom_url="/ok", custom_label="Ok")
        assert [item.label for item in resolve_menu_items(menu)] == ["Ok"]

    def test_other_site_target_skipped(self, menu, other_site):
        """Test that items pointing at another site's objects are skipped."""
        foreign = other_site.post_types.get(name="post")
        MenuItem.objects.create(menu=menu, item_type="post_type", object_id=foreign.pk)
        assert resolve_menu_items(menu) == []

    def test_meta(self, menu):
        """Test that item meta is exposed on the resolved item."""
        item = MenuItem.objects.create(menu=menu, custom_url="/a", custom_label="A")
        MenuItemMeta.objects.create(item=item, key="icon", value="star")
        assert resolve_menu_items(menu)[0].meta == {"icon": "star"}


class TestBuildMenuTree:
    """Tests for build_menu_tree."""

    def test_nesting(self, menu):
        """Test that children nest under their parents."""
        parent = MenuItem.objects.create(menu=menu, custom_url="/a", custom_label="A", menu_order=1)
        MenuItem.objects.create(menu=menu, custom_url="/a/b", custom_label="B", parent=parent, menu_order=2)
        MenuItem.objects.create(menu=menu, custom_url="/c", custom_label="C", menu_order=3)

        tree = build_menu_tree(resolve_menu_items(menu))
        assert [item.label for item in tree] == ["A", "C"]
        assert [child.label for child in tree[0].children] == ["B"]
        assert tree[0].as_dict()["children"][0]["label"] == "B"

    def test_orphans_become_roots(self, menu, published_post):
        """Test that children of skipped items are promoted to roots."""
        parent = MenuItem.objects.create(menu=menu, item_type="post", object_id=99999)
        MenuItem.objects.create(menu=menu, custom_url="/b", custom_label="B", parent=parent)
        tree = build_menu_tree(resolve_menu_items(menu))
        assert [item.label for item in tree] == ["B"]


class TestMenuByLocation:
    """Tests for get_menu_by_location."""

    def test_assigned_location(self, site, menu):
        """Test fetching the menu assigned to a location."""
        MenuItem.objects.create(menu=menu, custom_url="/", custom_label="Home")
        found, items = get_menu_by_location(site, "primary")
        assert found == menu
        assert [item.label for item in items] == ["Home"]

    def test_empty_location(self, site, menu):
        """Test that an unassigned location returns no menu."""
        assert get_menu_by_location(site, "footer") == (None, [])


class TestReorderMenuItems:
    """Tests for reorder_menu_items."""

    def test_reorder_and_nest(self, menu):
        """Test applying a new order and parent."""
        first = MenuItem.objects.create(menu=menu, custom_url="/1", custom_label="One", menu_order=1)
        second = MenuItem.objects.create(menu=menu, custom_url="/2", custom_label="Two", menu_order=2)
        reorder_menu_items(menu, [
            {"id": second.pk, "menu_order": 1},
            {"id": first.pk, "menu_order": 2, "parent_id": second.pk},
        ])
        first.refresh_from_db()
        assert first.parent_id == second.pk
        assert list(menu.items.order_by("menu_order").values_list("pk", flat=True)) == [second.pk, first.pk]

    def test_foreign_item_rejected(self, site, menu):
        """Test that items of another menu cannot be reordered."""
        other = Menu.objects.create(site=site, name="other", display_name="Other")
        stranger = MenuItem.objects.create(menu=other, custom_url="/x", custom_label="X")
        with pytest.raises(MenuItem.DoesNotExist):
            reorder_menu_items(menu, [{"id": stranger.pk, "menu_order": 1}])

    def test_cycle_rejected(self, menu):
        """Test that two items cannot be nested inside each other."""
        first = MenuItem.objects.create(menu=menu, custom_url="/1", custom_label="One", menu_order=1)
        second = MenuItem.objects.create(menu=menu, custom_url="/2", custom_label="Two", menu_order=2)
        with pytest.raises(ValidationError):
            reorder_menu_items(menu, [
                {"id": first.pk, "menu_order": 1, "parent_id": second.pk},
                {"id": second.pk, "menu_order": 2, "parent_id": first.pk},
            ])
        first.refresh_from_db()
        assert first.parent_id is None
        assert len(build_menu_tree(resolve_menu_items(menu))) == 2
