"""
Shared fixtures for django-cms-engine tests.
"""
from io import BytesIO

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image

from cms_engine.api.tokens import generate_token_pair
from cms_engine.bootstrap import create_default_roles
from cms_engine.models import Post, Role, Site, SiteUser
from cms_engine.permissions import get_role_name

User = get_user_model()

PASSWORD = "Secret123!"


def make_member(site, role_name, username):
    """Create a user holding role_name on site."""
    user = User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password=PASSWORD,
    )
    SiteUser.objects.create(site=site, user=user, role=Role.objects.get(name=role_name))
    return user


def _make_image(name="photo.png", size=(400, 300), color="red", image_format="PNG", content_type="image/png"):
    """Return an in-memory image upload."""
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format=image_format)
    return SimpleUploadedFile(name, buffer.getvalue(), content_type=content_type)


@pytest.fixture(autouse=True)
def clear_cache():
    """Reset rate limits and the token blacklist between tests."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def roles(db):
    """Create the built-in roles."""
    create_default_roles()
    return {role.name: role for role in Role.objects.all()}


@pytest.fixture
def site(db, roles):
    """Create the default site, seeded with post types and taxonomies."""
    return Site.objects.create(
        name="default",
        display_name="Test Site",
        description="Just another test site",
        domain="blog.example.com",
    )


@pytest.fixture
def other_site(db, roles):
    """Create a second site."""
    return Site.objects.create(
        name="other",
        display_name="Other Site",
        domain="shop.example.com",
    )


@pytest.fixture
def superuser(db):
    """Create a Django superuser, who acts as super_admin everywhere."""
    return User.objects.create_superuser(
        username="root",
        email="root@example.com",
        password=PASSWORD,
    )


@pytest.fixture
def site_admin(site):
    return make_member(site, "admin", "siteadmin")


@pytest.fixture
def editor(site):
    return make_member(site, "editor", "editor")


@pytest.fixture
def author(site):
    return make_member(site, "author", "author")


@pytest.fixture
def contributor(site):
    return make_member(site, "contributor", "contributor")


@pytest.fixture
def subscriber(site):
    return make_member(site, "subscriber", "subscriber")


@pytest.fixture
def post_type(site):
    """The built-in post type (URL base 'blog')."""
    return site.post_types.get(name="post")


@pytest.fixture
def page_type(site):
    """The built-in hierarchical page type (served from the site root)."""
    return site.post_types.get(name="page")


@pytest.fixture
def category(site):
    return site.taxonomies.get(name="category")


@pytest.fixture
def tag(site):
    return site.taxonomies.get(name="tag")


@pytest.fixture
def published_post(site, post_type, author):
    """Create a published post."""
    return Post.objects.create(
        site=site,
        post_type=post_type,
        title="Hello World",
        content="Welcome to the site.",
        author=author,
        status=Post.STATUS_PUBLISHED,
    )


@pytest.fixture
def draft_post(site, post_type, author):
    """Create a draft post."""
    return Post.objects.create(
        site=site,
        post_type=post_type,
        title="Work In Progress",
        content="Not ready yet.",
        author=author,
    )


@pytest.fixture
def member(site):
    """Return a function creating a user with a role on a site (default: site)."""

    def build(role_name, username, on_site=None):
        return make_member(on_site or site, role_name, username)

    return build


@pytest.fixture
def image_upload():
    """Return a function building in-memory image uploads."""
    return _make_image


@pytest.fixture
def auth_headers():
    """Return a function building bearer token headers for a user and site."""

    def build(user, site=None):
        role = get_role_name(user, site) if site else None
        tokens = generate_token_pair(user, site, role)
        headers = {"HTTP_AUTHORIZATION": f"Bearer {tokens['access_token']}"}
        if site is not None:
            headers["HTTP_X_SITE_ID"] = str(site.pk)
        return headers

    return build
