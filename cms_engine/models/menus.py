"""
Navigation menu models for django-cms-engine.
"""
from django.db import models

from .sites import Site


class MenuLocation(models.Model):
    """Named slot in a theme where a menu can be displayed."""

    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name="menu_locations")
    name = models.SlugField(max_length=50)
    display_name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        verbose_name = "Menu Location"
        constraints = [
            models.UniqueConstraint(fields=["site", "name"], name="cms_menu_location_unique"),
        ]

    def __str__(self):
        return self.display_name or self.name


class Menu(models.Model):
    """
    Ordered set of navigation items.

    A location holds at most one menu.
    """

    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name="menus")
    name = models.SlugField(max_length=100)
    display_name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    location = models.OneToOneField(
        MenuLocation,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="menu",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["site", "name"], name="cms_menu_unique_name"),
        ]

    def __str__(self):
        return self.display_name or self.name


class MenuItem(models.Model):
    """
    Single link in a menu.

    Items either carry a custom URL or point at a post, term, post type
    archive or taxonomy archive by id. Items nest via parent.
    """

    TYPE_CUSTOM = "custom"
    TYPE_POST_TYPE = "post_type"
    TYPE_TAXONOMY = "taxonomy"
    TYPE_POST = "post"
    TYPE_TERM = "term"
    TYPE_CHOICES = [
        (TYPE_CUSTOM, "Custom link"),
        (TYPE_POST_TYPE, "Post type archive"),
        (TYPE_TAXONOMY, "Taxonomy archive"),
        (TYPE_POST, "Post"),
        (TYPE_TERM, "Term"),
    ]

    TARGET_CHOICES = [
        ("_self", "Same window"),
        ("_blank", "New window"),
    ]

    menu = models.ForeignKey(Menu, on_delete=models.CASCADE, related_name="items")
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="children",
    )
    item_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_CUSTOM)
    object_id = models.PositiveIntegerField(null=True, blank=True)
    custom_url = models.CharField(max_length=500, blank=True)
    custom_label = models.CharField(max_length=255, blank=True)
    menu_order = models.IntegerField(default=0)
    target = models.CharField(max_length=10, choices=TARGET_CHOICES, default="_self")
    title_attr = models.CharField(max_length=255, blank=True)
    css_classes = models.CharField(max_length=255, blank=True)
    xfn = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["menu_order", "id"]
        verbose_name = "Menu Item"
        indexes = [models.Index(fields=["menu", "menu_order"])]

    def __str__(self):
        return self.custom_label or self.custom_url or f"{self.item_type} #{self.object_id}"

    def get_target_model(self):
        """Return the model class this item points at, or None for custom links."""
        from .content import Post, PostType
        from .taxonomy import Taxonomy, Term

        return {
            self.TYPE_POST: Post,
            self.TYPE_TERM: Term,
            self.TYPE_POST_TYPE: PostType,
            self.TYPE_TAXONOMY: Taxonomy,
        }.get(self.item_type)

    def get_object(self):
        """Return the target object, or None if it no longer exists."""
        model = self.get_target_model()
        if model is None or self.object_id is None:
            return None
        return model.objects.filter(pk=self.object_id, site_id=self.menu.site_id).first()

    def resolve_url(self, target=None):
        """Return the URL this item links to."""
        from ..permalinks import build_path_url

        if self.item_type == self.TYPE_CUSTOM:
            return self.custom_url or "#"
        if target is None:
            return None
        if self.item_type == self.TYPE_POST_TYPE:
            return build_path_url(target.slug)
        return target.get_absolute_url()

    def resolve_label(self, target=None):
        """Return the custom label, else the target's title, else the custom URL."""
        if self.custom_label:
            return self.custom_label
        if target is not None:
            if self.item_type == self.TYPE_POST:
                return target.title
            if self.item_type == self.TYPE_TERM:
                return target.name
            return target.label
        return self.custom_url


class MenuItemMeta(models.Model):
    """Extra key/value data attached to a menu item."""

    item = models.ForeignKey(MenuItem, on_delete=models.CASCADE, related_name="meta")
    key = models.CharField(max_length=255)
    value = models.TextField(blank=True)

    class Meta:
        verbose_name = "Menu Item Meta"
        verbose_name_plural = "Menu Item Meta"
        constraints = [
            models.UniqueConstraint(fields=["item", "key"], name="cms_menu_item_meta_unique"),
        ]

    def __str__(self):
        return f"{self.item}: {self.key}"
