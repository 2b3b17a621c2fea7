"""
Audit log model for django-cms-engine.
"""
from django.conf import settings
from django.db import models

from .sites import Site


class ActivityLog(models.Model):
    """Record of a user action on a site or deployment-wide."""

    ACTION_CHOICES = [
        ("login", "Login"),
        ("logout", "Logout"),
        ("login_failed", "Login failed"),
        ("post_create", "Post created"),
        ("post_update", "Post updated"),
        ("post_delete", "Post deleted"),
        ("post_publish", "Post published"),
        ("post_trash", "Post trashed"),
        ("post_restore", "Post restored"),
        ("revision_restore", "Revision restored"),
        ("media_upload", "Media uploaded"),
        ("media_update", "Media updated"),
        ("media_delete", "Media deleted"),
        ("media_trash", "Media trashed"),
        ("media_restore", "Media restored"),
        ("term_create", "Term created"),
        ("term_update", "Term updated"),
        ("term_delete", "Term deleted"),
        ("taxonomy_create", "Taxonomy created"),
        ("taxonomy_update", "Taxonomy updated"),
        ("taxonomy_delete", "Taxonomy deleted"),
        ("post_type_create", "Post type created"),
        ("post_type_update", "Post type updated"),
        ("post_type_delete", "Post type deleted"),
        ("menu_create", "Menu created"),
        ("menu_update", "Menu updated"),
        ("menu_delete", "Menu deleted"),
        ("user_create", "User created"),
        ("user_update", "User updated"),
        ("user_delete", "User deleted"),
        ("site_create", "Site created"),
        ("site_update", "Site updated"),
        ("site_delete", "Site deleted"),
        ("settings_update", "Settings updated"),
        ("export", "Export"),
        ("import", "Import"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="cms_activity",
    )
    site = models.ForeignKey(
        Site,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="activity",
    )
    action = models.CharField(max_length=30, choices=ACTION_CHOICES, db_index=True)
    entity_type = models.CharField(max_length=50, blank=True)
    entity_id = models.CharField(max_length=50, blank=True)
    entity_name = models.CharField(max_length=255, blank=True)
    details = models.TextField(blank=True)
    changes_before = models.JSONField(null=True, blank=True)
    changes_after = models.JSONField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "Activity Log Entry"
        verbose_name_plural = "Activity Log"
        indexes = [models.Index(fields=["site", "-created_at"])]

    def __str__(self):
        return f"{self.get_action_display()}: {self.entity_name or self.entity_type}"
