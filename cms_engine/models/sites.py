"""
Site, Role and membership models for django-cms-engine.

Sites, roles and users are global. Everything else is owned by a site.
"""
import secrets

from django.conf import settings
from django.db import models
from django.utils import timezone

from ..conf import get_site_namespace


class Site(models.Model):
    """
    A tenant in the deployment.

    Each site owns its own post types, posts, taxonomies, media, menus
    and settings. The sequential primary key doubles as the storage
    namespace (site_{id}_...).
    """

    name = models.SlugField(max_length=100, unique=True)
    display_name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    domain = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Host name served by this site, e.g. blog.example.com",
    )
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.display_name or self.name

    def namespace(self, name):
        """Return a site-namespaced name, e.g. site.namespace('media')."""
        return get_site_namespace(self.pk, name)

    def get_setting(self, key, default=None):
        """Return a typed per-site setting value."""
        from .options import Setting

        return Setting.get_value(self, key, default)


class Role(models.Model):
    """
    Global role with a permission map.

    A role named super_admin with manage_all grants everything.
    """

    name = models.SlugField(max_length=50, unique=True)
    label = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    permissions = models.JSONField(default=dict, blank=True)
    is_system = models.BooleanField(
        default=False,
        help_text="System roles are created by cms_init and cannot be deleted",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.label

    def has_permission(self, permission):
        """Check whether this role grants a permission."""
        if self.permissions.get("manage_all"):
            return True
        return bool(self.permissions.get(permission))


class SiteUser(models.Model):
    """Assignment of a user to a site with a role."""

    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name="memberships")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="site_memberships",
    )
    role = models.ForeignKey(Role, on_delete=models.PROTECT, related_name="memberships")
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["site", "user"]
        verbose_name = "Site User"
        constraints = [
            models.UniqueConstraint(fields=["site", "user"], name="cms_site_user_unique"),
        ]

    def __str__(self):
        return f"{self.user} @ {self.site} ({self.role.name})"


class UserMeta(models.Model):
    """
    Per-user key/value storage.

    site is null for global values. Also holds editor autosaves.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="cms_meta",
    )
    site = models.ForeignKey(
        Site,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="user_meta",
    )
    key = models.CharField(max_length=255, db_index=True)
    value = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "User Meta"
        verbose_name_plural = "User Meta"
        constraints = [
            models.UniqueConstraint(fields=["user", "site", "key"], name="cms_user_meta_unique"),
        ]

    def __str__(self):
        return f"{self.user}: {self.key}"

    @classmethod
    def get_value(cls, user, key, site=None, default=None):
        item = cls.objects.filter(user=user, site=site, key=key).first()
        return item.value if item else default

    @classmethod
    def set_value(cls, user, key, value, site=None):
        item, _ = cls.objects.update_or_create(
            user=user, site=site, key=key, defaults={"value": value}
        )
        return item


class GlobalSetting(models.Model):
    """Deployment-wide typed setting."""

    TYPE_CHOICES = [
        ("string", "String"),
        ("number", "Number"),
        ("boolean", "Boolean"),
        ("json", "JSON"),
        ("text", "Text"),
    ]

    key = models.CharField(max_length=100, unique=True)
    value = models.JSONField(default=None, null=True, blank=True)
    value_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default="string")
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["key"]

    def __str__(self):
        return self.key

    @classmethod
    def get_value(cls, key, default=None):
        item = cls.objects.filter(key=key).first()
        if item is None or item.value is None:
            return default
        return item.value

    @classmethod
    def set_value(cls, key, value, value_type=None):
        defaults = {"value": value}
        if value_type:
            defaults["value_type"] = value_type
        item, _ = cls.objects.update_or_create(key=key, defaults=defaults)
        return item


def generate_api_key():
    """Return a new random API key."""
    return secrets.token_hex(32)


class ApiKey(models.Model):
    """
    Long-lived credential for the REST API.

    Sent as the X-API-Key header. Acts as its user on its site.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="cms_api_keys",
    )
    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name="api_keys")
    name = models.CharField(max_length=100, blank=True)
    key = models.CharField(max_length=64, unique=True, default=generate_api_key, editable=False)
    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    last_used_at = models.DateTimeField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "API Key"

    def __str__(self):
        return self.name or f"{self.user} key #{self.pk}"

    def is_valid(self, now=None):
        """Check that the key is active and not expired."""
        now = now or timezone.now()
        if not self.is_active:
            return False
        return self.expires_at is None or self.expires_at > now

    def record_use(self):
        """Update usage counters atomically."""
        ApiKey.objects.filter(pk=self.pk).update(
            last_used_at=timezone.now(),
            usage_count=models.F("usage_count") + 1,
        )
