"""
Per-site settings for django-cms-engine.
"""
import json

from django.db import models

from .sites import Site


class Setting(models.Model):
    """
    Typed per-site option (site_title, posts_per_page, ...).

    Values are stored as text and converted on read according to
    value_type.
    """

    TYPE_CHOICES = [
        ("string", "String"),
        ("number", "Number"),
        ("boolean", "Boolean"),
        ("json", "JSON"),
        ("text", "Text"),
    ]

    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name="settings")
    key = models.CharField(max_length=100)
    value = models.TextField(blank=True)
    value_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default="string")
    group = models.CharField(max_length=50, default="general", db_index=True)
    label = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    is_public = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["group", "key"]
        constraints = [
            models.UniqueConstraint(fields=["site", "key"], name="cms_setting_unique_key"),
        ]

    def __str__(self):
        return f"{self.site}: {self.key}"

    @staticmethod
    def encode(value, value_type):
        """Convert a Python value to its stored text."""
        if value is None:
            return ""
        if value_type == "boolean":
            return "true" if value in (True, "true", "1", 1, "on") else "false"
        if value_type == "json":
            return json.dumps(value)
        return str(value)

    @property
    def typed_value(self):
        """Return the value converted according to value_type."""
        if self.value_type == "number":
            try:
                number = float(self.value)
            except ValueError:
                return None
            return int(number) if number.is_integer() else number
        if self.value_type == "boolean":
            return self.value.lower() in ("true", "1", "on", "yes")
        if self.value_type == "json":
            try:
                return json.loads(self.value)
            except ValueError:
                return None
        return self.value

    @classmethod
    def get_value(cls, site, key, default=None):
        item = cls.objects.filter(site=site, key=key).first()
        if item is None:
            return default
        return item.typed_value

    @classmethod
    def set_value(cls, site, key, value, value_type=None, **fields):
        """Create or update a setting, keeping its type unless one is given."""
        item = cls.objects.filter(site=site, key=key).first()
        if item is None:
            item = cls(site=site, key=key, value_type=value_type or "string")
        elif value_type:
            item.value_type = value_type
        for name, field_value in fields.items():
            setattr(item, name, field_value)
        item.value = cls.encode(value, item.value_type)
        item.save()
        return item
