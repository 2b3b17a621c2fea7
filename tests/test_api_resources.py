"""
Tests for the post type, taxonomy, media, menu, settings, site, user and
tool endpoints of the REST API.
"""
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

from cms_engine.models import (
    ActivityLog,
    GlobalSetting,
    Media,
    MediaFolder,
    Menu,
    MenuItem,
    MenuLocation,
    Post,
    PostType,
    Role,
    Setting,
    Site,
    SiteUser,
    Term,
)


def api_url(name, **kwargs):
    return reverse(f"cms_engine:api:{name}", kwargs=kwargs or None)


@pytest.fixture
def api(client, site, auth_headers):
    """Return a function calling the API as a user on the default site."""

    def call(method, name, user, data=None, query="", **kwargs):
        url = api_url(name, **kwargs) + query
        headers = auth_headers(user, site)
        handler = getattr(client, method)
        if data is None:
            return handler(url, **headers)
        return handler(url, data, content_type="application/json", **headers)

    return call


@pytest.fixture
def upload(client, site, auth_headers, image_upload):
    """Return a function uploading an image through the API."""

    def call(user, **fields):
        data = {"file": image_upload(), **fields}
        return client.post(api_url("media"), data, **auth_headers(user, site))

    return call


class TestPostTypes:
    """Tests for /post-types/."""

    def test_list(self, api, subscriber, site):
        """Test that any member can list post types."""
        response = api("get", "post_types", subscriber)
        names = {item["name"]: item for item in response.json()["data"]}
        assert set(names) == {"post", "page"}
        assert set(names["post"]["taxonomies"]) == {"category", "tag"}

    def test_create(self, api, site_admin, site):
        """Test creating a custom post type with taxonomies."""
        response = api("post", "post_types", site_admin, {"name": "product", "taxonomies": ["category"]})
        data = response.json()["data"]
        assert response.status_code == 201
        assert data["slug"] == "product"
        assert data["taxonomies"] == ["category"]
        assert ActivityLog.objects.filter(action="post_type_create").exists()

    def test_create_requires_manage_settings(self, api, editor):
        """Test that editors cannot create post types."""
        response = api("post", "post_types", editor, {"name": "product"})
        assert response.status_code == 403

    def test_duplicate_name(self, api, site_admin):
        """Test that names are unique per site."""
        response = api("post", "post_types", site_admin, {"name": "post"})
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_VALUE"

    def test_unknown_taxonomy(self, api, site_admin):
        """Test that attached taxonomies must exist."""
        response = api("post", "post_types", site_admin, {"name": "product", "taxonomies": ["genre"]})
        assert response.status_code == 400
        assert response.json()["error"]["field"] == "taxonomies"

    def test_builtin_slug_locked(self, api, site_admin, post_type):
        """Test that the URL base of a built-in type cannot change."""
        response = api("put", "post_type_detail", site_admin, {"slug": "news"}, pk=post_type.pk)
        assert response.status_code == 400
        assert response.json()["error"]["field"] == "slug"

    def test_update_labels(self, api, site_admin, post_type):
        """Test updating a built-in type's labels."""
        response = api(
            "put", "post_type_detail", site_admin, {"labels": {"plural_name": "Articles"}}, pk=post_type.pk
        )
        assert response.status_code == 200
        post_type.refresh_from_db()
        assert post_type.labels == {"plural_name": "Articles"}

    def test_delete_builtin(self, api, site_admin, page_type):
        """Test that built-in types cannot be deleted."""
        response = api("delete", "post_type_detail", site_admin, pk=page_type.pk)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    def test_delete_custom(self, api, site_admin, site):
        """Test deleting custom types, refused while posts exist."""
        product = PostType.objects.create(site=site, name="product", slug="shop")
        post = Post.objects.create(site=site, post_type=product, title="Widget")
        assert api("delete", "post_type_detail", site_admin, pk=product.pk).status_code == 409
        post.delete()
        assert api("delete", "post_type_detail", site_admin, pk=product.pk).status_code == 200
        assert not PostType.objects.filter(pk=product.pk).exists()

    def test_other_site_hidden(self, api, site_admin, other_site):
        """Test that another site's post types are not found."""
        foreign = other_site.post_types.get(name="post")
        response = api("get", "post_type_detail", site_admin, pk=foreign.pk)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


class TestTaxonomies:
    """Tests for /taxonomies/ and /terms/."""

    def test_filter_by_post_type(self, api, subscriber, site):
        """Test listing taxonomies of a post type."""
        response = api("get", "taxonomies", subscriber, query="?post_type=page")
        assert response.json()["data"] == []
        response = api("get", "taxonomies", subscriber, query="?post_type=post")
        assert {item["name"] for item in response.json()["data"]} == {"category", "tag"}

    def test_create_taxonomy(self, api, editor, site):
        """Test creating a taxonomy attached to posts."""
        response = api("post", "taxonomies", editor, {"name": "genre", "hierarchical": True, "post_types": ["post"]})
        data = response.json()["data"]
        assert response.status_code == 201
        assert data["hierarchical"] is True
        assert data["post_types"] == ["post"]

    def test_delete_default_taxonomy(self, api, editor, category):
        """Test that built-in taxonomies cannot be deleted."""
        response = api("delete", "taxonomy_detail", editor, pk=category.pk)
        assert response.status_code == 400

    def test_create_term(self, api, editor, category):
        """Test creating a term; the slug comes from the name."""
        response = api("post", "terms", editor, {"name": "Local News", "taxonomy": "category"})
        data = response.json()["data"]
        assert response.status_code == 201
        assert data["slug"] == "local-news"
        assert data["url"] == "/category/local-news"

    def test_create_term_unknown_taxonomy(self, api, editor, site):
        """Test that the taxonomy must exist on the site."""
        response = api("post", "terms", editor, {"name": "Rock", "taxonomy": "genre"})
        assert response.status_code == 400
        assert response.json()["error"]["field"] == "taxonomy"

    def test_author_cannot_create_terms(self, api, author, category):
        """Test that manage_taxonomies is required."""
        response = api("post", "terms", author, {"name": "News", "taxonomy": "category"})
        assert response.status_code == 403

    def test_list_terms_with_counts(self, api, subscriber, category, published_post, draft_post):
        """Test that post counts include only published posts."""
        news = Term.objects.create(taxonomy=category, name="News")
        Term.objects.create(taxonomy=category, name="Empty")
        published_post.set_terms(category, [news])
        draft_post.set_terms(category, [news])

        body = api("get", "terms", subscriber, query="?taxonomy=category").json()
        counts = {item["name"]: item["post_count"] for item in body["data"]}
        assert counts == {"Empty": 0, "News": 1}
        assert body["meta"]["pagination"]["total"] == 2

        hidden = api("get", "terms", subscriber, query="?taxonomy=category&hide_empty=true").json()
        assert [item["name"] for item in hidden["data"]] == ["News"]

    def test_duplicate_term_slug(self, api, editor, category):
        """Test that slugs are unique within a taxonomy."""
        Term.objects.create(taxonomy=category, name="News")
        response = api("post", "terms", editor, {"name": "More News", "slug": "news", "taxonomy": "category"})
        assert response.status_code == 409

    def test_delete_term_with_children(self, api, editor, category):
        """Test that parents cannot be deleted before their children."""
        parent = Term.objects.create(taxonomy=category, name="World")
        child = Term.objects.create(taxonomy=category, name="Europe", parent=parent)
        assert api("delete", "term_detail", editor, pk=parent.pk).status_code == 400
        assert api("delete", "term_detail", editor, pk=child.pk).status_code == 200
        assert api("delete", "term_detail", editor, pk=parent.pk).status_code == 200


class TestMedia:
    """Tests for /media/."""

    def test_upload(self, upload, author, site):
        """Test uploading an image with generated sizes."""
        response = upload(author, alt_text="A red square")
        data = response.json()["data"]
        assert response.status_code == 201
        assert response.json()["meta"]["duplicate"] is False
        assert data["media_type"] == "IMAGE"
        assert data["width"] == 400
        assert data["alt_text"] == "A red square"
        assert set(data["sizes"]) >= {"thumbnail", "full"}
        assert Media.objects.get(pk=data["id"]).uploaded_by == author

    def test_duplicate_upload(self, upload, author):
        """Test that identical files return the existing item."""
        first = upload(author).json()["data"]
        response = upload(author)
        assert response.status_code == 200
        assert response.json()["meta"]["duplicate"] is True
        assert response.json()["data"]["id"] == first["id"]
        assert Media.objects.count() == 1

    def test_missing_file(self, api, author):
        """Test that a file is required."""
        response = api("post", "media", author, {})
        assert response.status_code == 400
        assert response.json()["error"]["field"] == "file"

    def test_disallowed_type(self, client, site, author, auth_headers):
        """Test that unlisted mime types are refused."""
        script = SimpleUploadedFile("evil.sh", b"#!/bin/sh\n", content_type="application/x-sh")
        response = client.post(api_url("media"), {"file": script}, **auth_headers(author, site))
        assert response.status_code == 400
        assert response.json()["error"]["field"] == "file"

    def test_subscriber_cannot_upload(self, upload, subscriber):
        """Test that uploads need media permissions."""
        assert upload(subscriber).status_code == 403

    def test_own_uploads_only(self, api, upload, editor, author):
        """Test that authors only see and edit their own uploads."""
        media_id = upload(editor).json()["data"]["id"]
        assert api("get", "media", author).json()["data"] == []
        assert len(api("get", "media", editor).json()["data"]) == 1
        assert api("put", "media_detail", author, {"caption": "Mine"}, pk=media_id).status_code == 403

    def test_update(self, api, upload, author, site):
        """Test updating alt text, caption and folder."""
        media_id = upload(author).json()["data"]["id"]
        folder = MediaFolder.objects.create(site=site, name="Photos")
        response = api(
            "put", "media_detail", author, {"alt_text": "Alt", "caption": "Caption", "folder_id": folder.pk},
            pk=media_id,
        )
        data = response.json()["data"]
        assert data["alt_text"] == "Alt"
        assert data["folder_id"] == folder.pk

    def test_trash_restore_and_delete(self, api, upload, author):
        """Test that DELETE trashes and force deletes permanently."""
        media_id = upload(author).json()["data"]["id"]
        trashed = api("delete", "media_detail", author, pk=media_id).json()["data"]
        assert trashed["status"] == Media.STATUS_TRASH
        assert api("get", "media", author).json()["data"] == []
        assert len(api("get", "media", author, query="?status=trash").json()["data"]) == 1

        restored = api("post", "media_restore", author, pk=media_id).json()["data"]
        assert restored["status"] == Media.STATUS_ACTIVE
        assert api("post", "media_restore", author, pk=media_id).status_code == 422

        response = api("delete", "media_detail", author, query="?force=true", pk=media_id)
        assert response.json()["data"]["deleted"] is True
        assert not Media.objects.filter(pk=media_id).exists()

    def test_empty_trash(self, api, upload, editor, author):
        """Test that emptying the trash needs manage_media."""
        media_id = upload(editor).json()["data"]["id"]
        Media.objects.get(pk=media_id).trash()
        assert api("delete", "media_trash", author).status_code == 403
        response = api("delete", "media_trash", editor)
        assert response.json()["data"]["deleted"] == 1
        assert Media.objects.count() == 0

    def test_usage(self, api, upload, author, published_post):
        """Test listing posts that use a media item."""
        media_id = upload(author).json()["data"]["id"]
        published_post.featured_image_id = media_id
        published_post.save()
        data = api("get", "media_detail", author, query="?include=usage", pk=media_id).json()["data"]
        assert [post["id"] for post in data["usage"]] == [published_post.pk]


class TestMediaFolders:
    """Tests for /media/folders/."""

    def test_create_nested(self, api, author, site):
        """Test creating folders inside folders."""
        parent = api("post", "media_folders", author, {"name": "Photos"}).json()["data"]
        child = api("post", "media_folders", author, {"name": "2024", "parent_id": parent["id"]})
        assert child.status_code == 201
        assert child.json()["data"]["parent_id"] == parent["id"]
        listed = api("get", "media_folders", author, query=f"?parent_id={parent['id']}").json()["data"]
        assert [folder["name"] for folder in listed] == ["2024"]

    def test_move_into_descendant(self, api, author, site):
        """Test that a folder cannot be moved below itself."""
        parent = MediaFolder.objects.create(site=site, name="Photos")
        child = MediaFolder.objects.create(site=site, name="2024", parent=parent)
        response = api("put", "media_folder_detail", author, {"parent_id": child.pk}, pk=parent.pk)
        assert response.status_code == 400
        assert response.json()["error"]["field"] == "parent_id"

    def test_delete_needs_manage_media(self, api, author, editor, site):
        """Test that only media managers delete folders."""
        folder = MediaFolder.objects.create(site=site, name="Old")
        assert api("delete", "media_folder_detail", author, pk=folder.pk).status_code == 403
        assert api("delete", "media_folder_detail", editor, pk=folder.pk).status_code == 200


class TestMenus:
    """Tests for /menus/ and /menu-locations/."""

    def test_create_at_location(self, api, site_admin, site):
        """Test creating a menu assigned to a location."""
        response = api("post", "menus", site_admin, {"name": "main", "display_name": "Main", "location": "primary"})
        data = response.json()["data"]
        assert response.status_code == 201
        assert data["location"] == "primary"
        assert data["items"] == []

    def test_location_taken_over(self, api, site_admin, site):
        """Test that assigning a location releases it from the previous menu."""
        location = MenuLocation.objects.get(site=site, name="primary")
        old = Menu.objects.create(site=site, name="old", display_name="Old", location=location)
        api("post", "menus", site_admin, {"name": "new", "location": "primary"})
        old.refresh_from_db()
        assert old.location is None

    def test_duplicate_name(self, api, site_admin, site):
        """Test that menu names are unique per site."""
        Menu.objects.create(site=site, name="main", display_name="Main")
        response = api("post", "menus", site_admin, {"name": "main"})
        assert response.status_code == 409

    def test_unknown_location(self, api, site_admin):
        """Test that the location must exist."""
        response = api("post", "menus", site_admin, {"name": "main", "location": "sidebar"})
        assert response.status_code == 400
        assert response.json()["error"]["field"] == "location"

    def test_requires_manage_menus(self, api, editor):
        """Test that editors cannot manage menus."""
        assert api("post", "menus", editor, {"name": "main"}).status_code == 403

    def test_add_items(self, api, site_admin, site, published_post):
        """Test adding custom and post items."""
        menu = Menu.objects.create(site=site, name="main", display_name="Main")
        custom = api(
            "post", "menu_items", site_admin,
            {"item_type": "custom", "custom_url": "/contact", "custom_label": "Contact", "meta": {"icon": "mail"}},
            pk=menu.pk,
        )
        assert custom.status_code == 201
        assert custom.json()["data"]["meta"] == {"icon": "mail"}

        linked = api("post", "menu_items", site_admin, {"item_type": "post", "object_id": published_post.pk}, pk=menu.pk)
        assert linked.status_code == 201
        assert linked.json()["data"]["menu_order"] == 1

    def test_custom_item_needs_label(self, api, site_admin, site):
        """Test that custom items need a url and a label."""
        menu = Menu.objects.create(site=site, name="main", display_name="Main")
        response = api("post", "menu_items", site_admin, {"item_type": "custom", "custom_url": "/x"}, pk=menu.pk)
        assert response.status_code == 400
        assert response.json()["error"]["field"] == "custom_label"

    def test_item_target_must_exist(self, api, site_admin, site, other_site):
        """Test that linked objects must belong to the site."""
        menu = Menu.objects.create(site=site, name="main", display_name="Main")
        foreign = other_site.post_types.get(name="post")
        response = api(
            "post", "menu_items", site_admin, {"item_type": "post_type", "object_id": foreign.pk}, pk=menu.pk
        )
        assert response.status_code == 400
        assert response.json()["error"]["field"] == "object_id"

    def test_resolved_tree(self, api, subscriber, site, published_post):
        """Test the rendered item tree."""
        menu = Menu.objects.create(site=site, name="main", display_name="Main")
        parent = MenuItem.objects.create(menu=menu, custom_url="/about", custom_label="About", menu_order=1)
        MenuItem.objects.create(
            menu=menu, item_type="post", object_id=published_post.pk, parent=parent, menu_order=2
        )
        data = api("get", "menu_items", subscriber, query="?resolved=true", pk=menu.pk).json()["data"]
        assert [item["label"] for item in data] == ["About"]
        assert data[0]["children"][0]["url"] == "/blog/hello-world"

    def test_reorder(self, api, site_admin, site):
        """Test reordering and nesting items."""
        menu = Menu.objects.create(site=site, name="main", display_name="Main")
        first = MenuItem.objects.create(menu=menu, custom_url="/1", custom_label="One", menu_order=0)
        second = MenuItem.objects.create(menu=menu, custom_url="/2", custom_label="Two", menu_order=1)
        response = api(
            "post", "menu_items_reorder", site_admin,
            {"items": [{"id": second.pk, "menu_order": 0}, {"id": first.pk, "menu_order": 1, "parent_id": second.pk}]},
            pk=menu.pk,
        )
        assert response.status_code == 200
        first.refresh_from_db()
        assert first.parent_id == second.pk
        assert first.menu_order == 1

    def test_reorder_needs_items(self, api, site_admin, site):
        """Test that the body must contain an items array."""
        menu = Menu.objects.create(site=site, name="main", display_name="Main")
        response = api("post", "menu_items_reorder", site_admin, {"order": []}, pk=menu.pk)
        assert response.status_code == 400

    def test_delete_item_with_children(self, api, site_admin, site):
        """Test that parent items cannot be deleted before their children."""
        menu = Menu.objects.create(site=site, name="main", display_name="Main")
        parent = MenuItem.objects.create(menu=menu, custom_url="/a", custom_label="A")
        MenuItem.objects.create(menu=menu, custom_url="/b", custom_label="B", parent=parent)
        response = api("delete", "menu_item_detail", site_admin, pk=menu.pk, item_id=parent.pk)
        assert response.status_code == 400

    def test_public_location_menu(self, client, site):
        """Test that theme menus are readable anonymously."""
        location = MenuLocation.objects.get(site=site, name="primary")
        menu = Menu.objects.create(site=site, name="main", display_name="Main", location=location)
        MenuItem.objects.create(menu=menu, custom_url="/", custom_label="Home")

        response = client.get(api_url("menu_by_location", location="primary"), HTTP_HOST="blog.example.com")
        data = response.json()["data"]
        assert response.status_code == 200
        assert data["name"] == "main"
        assert [item["label"] for item in data["items"]] == ["Home"]

        empty = client.get(api_url("menu_by_location", location="footer"), HTTP_HOST="blog.example.com")
        assert empty.status_code == 404

    def test_create_location(self, api, site_admin, site):
        """Test registering a new theme location."""
        response = api("post", "menu_locations", site_admin, {"name": "sidebar"})
        assert response.status_code == 201
        assert response.json()["data"]["display_name"] == "Sidebar"
        assert api("post", "menu_locations", site_admin, {"name": "sidebar"}).status_code == 409


class TestSettings:
    """Tests for /settings/."""

    def test_public_only_without_manage_settings(self, api, subscriber, site_admin, site):
        """Test that private settings are hidden from regular members."""
        public = api("get", "site_settings", subscriber).json()["data"]
        everything = api("get", "site_settings", site_admin).json()["data"]
        assert "posts_per_page" in public
        assert "homepage_page_id" not in public
        assert "homepage_page_id" in everything
        assert public["site_title"]["value"] == "Test Site"

    def test_group_filter(self, api, site_admin):
        """Test filtering by settings group."""
        data = api("get", "site_settings", site_admin, query="?group=media").json()["data"]
        assert set(data) == {
            "media_thumbnail_width",
            "media_thumbnail_height",
            "media_medium_width",
            "media_medium_height",
            "media_large_width",
            "media_large_height",
        }

    def test_bulk_update(self, api, site_admin, site):
        """Test updating several settings at once."""
        response = api("put", "site_settings", site_admin, {"posts_per_page": 12, "site_title": "Renamed"})
        assert response.status_code == 200
        assert site.get_setting("posts_per_page") == 12
        assert site.get_setting("site_title") == "Renamed"
        assert ActivityLog.objects.filter(action="settings_update").exists()

    def test_bulk_update_type_checked(self, api, site_admin):
        """Test that number settings reject non-numbers."""
        response = api("put", "site_settings", site_admin, {"posts_per_page": "lots"})
        assert response.status_code == 400
        assert response.json()["error"]["field"] == "posts_per_page"

    def test_editor_cannot_update(self, api, editor):
        """Test that manage_settings is required for writes."""
        assert api("put", "site_settings", editor, {"site_title": "Mine"}).status_code == 403

    def test_detail(self, api, site_admin, subscriber, site):
        """Test creating, reading and deleting one setting."""
        created = api("put", "site_setting_detail", site_admin, {"value": "dark", "is_public": True}, key="theme")
        assert created.status_code == 201
        updated = api("put", "site_setting_detail", site_admin, {"value": "light"}, key="theme")
        assert updated.status_code == 200
        assert api("get", "site_setting_detail", subscriber, key="theme").json()["data"]["value"] == "light"
        assert api("get", "site_setting_detail", subscriber, key="homepage_page_id").status_code == 403

        assert api("delete", "site_setting_detail", site_admin, key="theme").status_code == 200
        assert not Setting.objects.filter(site=site, key="theme").exists()

    def test_global_settings_superuser_only(self, api, site_admin, superuser):
        """Test that global settings need a super admin."""
        assert api("get", "global_settings", site_admin).status_code == 403
        response = api("put", "global_settings", superuser, {"maintenance_mode": True})
        assert response.status_code == 200
        assert GlobalSetting.get_value("maintenance_mode") is True


class TestSites:
    """Tests for /sites/."""

    def test_list_accessible(self, api, editor, superuser, site, other_site):
        """Test that users only see the sites they belong to."""
        assert [item["id"] for item in api("get", "sites", editor).json()["data"]] == [site.pk]
        assert len(api("get", "sites", superuser).json()["data"]) == 2

    def test_create_seeds_defaults(self, api, superuser, site_admin):
        """Test that new sites are seeded; only super admins create them."""
        payload = {"name": "shop", "display_name": "Shop", "domain": "Shop.Example.org"}
        assert api("post", "sites", site_admin, payload).status_code == 403

        response = api("post", "sites", superuser, payload)
        data = response.json()["data"]
        assert response.status_code == 201
        assert data["domain"] == "shop.example.org"
        created = Site.objects.get(pk=data["id"])
        assert set(created.post_types.values_list("name", flat=True)) == {"post", "page"}
        assert created.get_setting("site_title") == "Shop"

    def test_duplicate_domain(self, api, superuser, other_site):
        """Test that domains are unique."""
        response = api("post", "sites", superuser, {"name": "shop2", "display_name": "Shop", "domain": "shop.example.com"})
        assert response.status_code == 409

    def test_update(self, api, site_admin, site):
        """Test that site admins edit their site but not its active flag."""
        response = api("put", "site_detail", site_admin, {"display_name": "Renamed"}, pk=site.pk)
        assert response.json()["data"]["display_name"] == "Renamed"
        assert api("put", "site_detail", site_admin, {"is_active": False}, pk=site.pk).status_code == 403

    def test_foreign_site_not_found(self, api, editor, other_site):
        """Test that inaccessible sites are reported as missing."""
        assert api("get", "site_detail", editor, pk=other_site.pk).status_code == 404

    def test_delete(self, api, superuser, site, other_site):
        """Test that the default site cannot be deleted."""
        assert api("delete", "site_detail", superuser, pk=site.pk).status_code == 403
        assert api("delete", "site_detail", superuser, pk=other_site.pk).status_code == 200
        assert not Site.objects.filter(pk=other_site.pk).exists()


class TestSiteUsers:
    """Tests for /sites/<id>/users/."""

    def test_list_members(self, api, site_admin, editor, site):
        """Test listing members with their roles."""
        data = api("get", "site_users", site_admin, pk=site.pk).json()["data"]
        roles = {item["username"]: item["role"] for item in data}
        assert roles["editor"] == "editor"
        assert roles["siteadmin"] == "admin"

    def test_assign_and_change(self, api, site_admin, site, other_site, member):
        """Test adding a user to a site and changing their role."""
        outsider = member("subscriber", "outsider", on_site=other_site)
        created = api("post", "site_users", site_admin, {"user_id": outsider.pk, "role": "author"}, pk=site.pk)
        assert created.status_code == 201
        changed = api("post", "site_users", site_admin, {"user_id": outsider.pk, "role": "editor"}, pk=site.pk)
        assert changed.status_code == 200
        assert SiteUser.objects.get(site=site, user=outsider).role.name == "editor"

    def test_super_admin_role_reserved(self, api, site_admin, editor, site):
        """Test that only super admins grant super_admin."""
        response = api("post", "site_users", site_admin, {"user_id": editor.pk, "role": "super_admin"}, pk=site.pk)
        assert response.status_code == 403

    def test_remove(self, api, site_admin, editor, site):
        """Test removing members; users cannot remove themselves."""
        assert api("delete", "site_user_detail", site_admin, pk=site.pk, user_id=site_admin.pk).status_code == 400
        assert api("delete", "site_user_detail", site_admin, pk=site.pk, user_id=editor.pk).status_code == 200
        assert not SiteUser.objects.filter(site=site, user=editor).exists()


class TestUsers:
    """Tests for /users/ and /roles/."""

    def test_create(self, api, site_admin, site):
        """Test creating a user, who becomes a subscriber of the site."""
        response = api(
            "post", "users", site_admin, {"username": "newbie", "email": "newbie@example.com", "password": "Secret123!"}
        )
        data = response.json()["data"]
        assert response.status_code == 201
        assert data["role"] == "subscriber"
        assert SiteUser.objects.filter(site=site, user_id=data["id"]).exists()

    def test_weak_password(self, api, site_admin):
        """Test that passwords go through the configured validators."""
        response = api("post", "users", site_admin, {"username": "newbie", "email": "n@example.com", "password": "weak"})
        assert response.status_code == 400
        assert response.json()["error"]["field"] == "password"

    def test_duplicate_username(self, api, site_admin, editor):
        """Test that usernames are unique."""
        response = api(
            "post", "users", site_admin, {"username": "editor", "email": "e2@example.com", "password": "Secret123!"}
        )
        assert response.status_code == 409

    def test_list_requires_manage_users(self, api, editor, site_admin):
        """Test that only user managers list users."""
        assert api("get", "users", editor).status_code == 403
        body = api("get", "users", site_admin, query="?role=editor").json()
        assert [item["username"] for item in body["data"]] == ["editor"]

    def test_own_profile(self, api, author):
        """Test that users edit their own profile without manage_users."""
        response = api("put", "user_detail", author, {"first_name": "Ada"}, pk=author.pk)
        assert response.json()["data"]["first_name"] == "Ada"
        assert api("put", "user_detail", author, {"role": "editor"}, pk=author.pk).status_code == 403

    def test_change_role(self, api, site_admin, author, site):
        """Test changing a member's role on the current site."""
        response = api("put", "user_detail", site_admin, {"role": "editor"}, pk=author.pk)
        assert response.json()["data"]["role"] == "editor"

    def test_delete(self, api, site_admin, subscriber):
        """Test deleting users; nobody deletes themselves."""
        assert api("delete", "user_detail", site_admin, pk=site_admin.pk).status_code == 400
        assert api("delete", "user_detail", site_admin, pk=subscriber.pk).status_code == 200

    def test_roles(self, api, subscriber, superuser, site_admin, roles):
        """Test listing and creating roles."""
        assert len(api("get", "roles", subscriber).json()["data"]) == 7
        payload = {"name": "seo_manager", "permissions": {"manage_settings": True}}
        assert api("post", "roles", site_admin, payload).status_code == 403
        response = api("post", "roles", superuser, payload)
        assert response.status_code == 201
        assert response.json()["data"]["label"] == "Seo Manager"
        assert api("post", "roles", superuser, payload).status_code == 409

    def test_delete_roles(self, api, superuser, roles):
        """Test that system roles cannot be deleted."""
        assert api("delete", "role_detail", superuser, pk=roles["editor"].pk).status_code == 403
        custom = Role.objects.create(name="reviewer", label="Reviewer")
        assert api("delete", "role_detail", superuser, pk=custom.pk).status_code == 200


class TestTools:
    """Tests for /activity/, /export/ and /import/."""

    def test_activity(self, api, site_admin, editor, site, published_post):
        """Test the audit log listing and filters."""
        api("put", "post_detail", editor, {"title": "Hello Again"}, pk=published_post.pk)
        assert api("get", "activity", editor).status_code == 403
        body = api("get", "activity", site_admin, query="?action=post_update").json()
        assert body["data"][0]["entity_name"] == "Hello Again"
        assert body["meta"]["pagination"]["total"] == 1

    def test_export_json(self, api, site_admin, published_post):
        """Test the JSON export envelope."""
        response = api("get", "export", site_admin, query="?sections=posts,settings")
        data = response.json()["data"]
        assert response.status_code == 200
        assert set(data["data"]) == {"posts", "settings"}
        assert data["data"]["posts"][0]["title"] == "Hello World"
        assert data["exported_by"] == "siteadmin"

    def test_export_unknown_section(self, api, site_admin):
        """Test that unknown sections are rejected."""
        response = api("get", "export", site_admin, query="?sections=comments")
        assert response.status_code == 400

    @pytest.mark.parametrize("export_format,content_type", [
        ("wxr", "application/rss+xml"),
        ("csv", "text/csv"),
    ])
    def test_export_download(self, api, site_admin, published_post, export_format, content_type):
        """Test WXR and CSV downloads."""
        response = api("get", "export", site_admin, query=f"?format={export_format}")
        assert response.status_code == 200
        assert response["Content-Type"].startswith(content_type)
        assert response["Content-Disposition"].startswith("attachment;")
        assert b"Hello World" in response.content

    def test_export_requires_manage_settings(self, api, editor):
        """Test that editors cannot export."""
        assert api("get", "export", editor).status_code == 403

    def test_import(self, api, site_admin, site):
        """Test importing settings and terms."""
        payload = {
            "data": {
                "settings": [{"key": "theme", "value": "dark", "value_type": "string"}],
                "taxonomies": [{"name": "category", "terms": [{"name": "Imported", "slug": "imported"}]}],
            }
        }
        response = api("post", "import", site_admin, payload)
        counts = response.json()["data"]
        assert response.status_code == 200
        assert counts["settings"] == 1
        assert counts["terms"] == 1
        assert site.get_setting("theme") == "dark"

    def test_import_malformed(self, api, site_admin):
        """Test that payloads without a data object are rejected."""
        response = api("post", "import", site_admin, {"data": []})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
