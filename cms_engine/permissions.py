"""
Role and capability checks.

A user's role is per site (SiteUser). Django superusers act as
super_admin everywhere.
"""
from .models import Site, SiteUser

ROLE_LEVELS = {
    "super_admin": 100,
    "admin": 80,
    "editor": 60,
    "author": 40,
    "contributor": 20,
    "subscriber": 10,
    "guest": 0,
}


def _is_authenticated(user):
    return user is not None and user.is_authenticated and user.is_active


def get_site_role(user, site):
    """Return the user's Role on a site, or None."""
    if not _is_authenticated(user) or site is None:
        return None
    cache = user.__dict__.setdefault("_cms_role_cache", {})
    site_id = getattr(site, "pk", site)
    if site_id not in cache:
        membership = SiteUser.objects.filter(user=user, site_id=site_id).select_related("role").first()
        cache[site_id] = membership.role if membership else None
    return cache[site_id]


def get_role_name(user, site):
    if _is_authenticated(user) and user.is_superuser:
        return "super_admin"
    role = get_site_role(user, site)
    return role.name if role else None


def get_permissions(user, site):
    """Return the permission map a user holds on a site."""
    if not _is_authenticated(user):
        return {}
    if user.is_superuser:
        return {"manage_all": True}
    role = get_site_role(user, site)
    return dict(role.permissions) if role else {}


def has_permission(user, site, permission):
    """Check a single permission, honouring manage_all."""
    permissions = get_permissions(user, site)
    return bool(permissions.get("manage_all") or permissions.get(permission))


def has_role(user, site, role_name):
    """Check that the user's role on a site is at least role_name."""
    current = get_role_name(user, site)
    if current is None:
        return False
    return ROLE_LEVELS.get(current, 0) >= ROLE_LEVELS.get(role_name, 0)


def can_access_site(user, site):
    if not _is_authenticated(user) or site is None:
        return False
    if user.is_superuser:
        return True
    return site.is_active and get_site_role(user, site) is not None


def get_available_sites(user):
    """Return the sites a user may work on."""
    if not _is_authenticated(user):
        return Site.objects.none()
    if user.is_superuser:
        return Site.objects.all()
    return Site.objects.filter(memberships__user=user, is_active=True).distinct()


def content_scope(post_type):
    """Return the permission scope ('pages' or 'posts') for a post type."""
    name = getattr(post_type, "name", post_type)
    return "pages" if name == "page" else "posts"


def can_create_post(user, site, post_type):
    scope = content_scope(post_type)
    return (
        has_permission(user, site, f"manage_{scope}_all")
        or has_permission(user, site, f"manage_{scope}_own")
        or (scope == "posts" and has_permission(user, site, "create_posts"))
    )


def can_edit_post(user, post):
    """Check whether a user may edit a post (all content, or their own)."""
    if not _is_authenticated(user):
        return False
    scope = content_scope(post.post_type)
    if has_permission(user, post.site_id, f"manage_{scope}_all"):
        return True
    if post.author_id != user.pk:
        return False
    if has_permission(user, post.site_id, f"manage_{scope}_own"):
        return True
    return scope == "posts" and has_permission(user, post.site_id, "edit_posts_own")


def can_publish_post(user, site, post_type):
    """Contributors can only submit posts for review."""
    scope = content_scope(post_type)
    return has_permission(user, site, f"manage_{scope}_all") or has_permission(
        user, site, f"manage_{scope}_own"
    )


def can_delete_post(user, post):
    """Deleting needs a manage_* grant, not just edit_posts_own."""
    scope = content_scope(post.post_type)
    if has_permission(user, post.site_id, f"manage_{scope}_all"):
        return True
    return post.author_id == getattr(user, "pk", None) and has_permission(
        user, post.site_id, f"manage_{scope}_own"
    )


def can_manage_media(user, site, media=None):
    """Check media access; manage_media_own only covers the user's uploads."""
    if has_permission(user, site, "manage_media"):
        return True
    if not has_permission(user, site, "manage_media_own"):
        return False
    return media is None or media.uploaded_by_id == user.pk
