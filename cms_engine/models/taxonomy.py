"""
Taxonomy, Term and PostTerm models for django-cms-engine.
"""
from django.core.exceptions import ValidationError
from django.db import models
from django.utils.text import slugify

from ..conf import cms_settings
from .sites import Site


class Taxonomy(models.Model):
    """
    Classification scheme (category, tag, genre, ...).

    Hierarchical taxonomies allow terms to nest under a parent term.
    """

    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name="taxonomies")
    name = models.SlugField(max_length=50, help_text="Internal name, e.g. category, tag")
    slug = models.SlugField(max_length=100, help_text="URL base for archive pages")
    labels = models.JSONField(default=dict, blank=True)
    description = models.TextField(blank=True)
    hierarchical = models.BooleanField(default=False)
    is_public = models.BooleanField(default=True)
    show_in_dashboard = models.BooleanField(default=True)
    show_in_menu = models.BooleanField(default=True)
    menu_position = models.IntegerField(default=10)
    post_types = models.ManyToManyField(
        "cms_engine.PostType",
        related_name="taxonomies",
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["menu_position", "name"]
        verbose_name_plural = "Taxonomies"
        constraints = [
            models.UniqueConstraint(fields=["site", "name"], name="cms_taxonomy_unique_name"),
            models.UniqueConstraint(fields=["site", "slug"], name="cms_taxonomy_unique_slug"),
        ]

    def __str__(self):
        return self.label

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)[:cms_settings.SLUG_MAX_LENGTH]
        super().save(*args, **kwargs)

    @property
    def label(self):
        return self.labels.get("plural_name") or self.name.title()

    def get_absolute_url(self):
        from ..permalinks import build_path_url

        return build_path_url(self.slug)


class Term(models.Model):
    """
    Classification value within a taxonomy.

    Terms support nesting via parent field when the taxonomy is
    hierarchical.
    """

    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name="terms")
    taxonomy = models.ForeignKey(Taxonomy, on_delete=models.CASCADE, related_name="terms")
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200)
    description = models.TextField(blank=True)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="children",
    )
    meta = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["taxonomy", "slug"], name="cms_term_unique_slug"),
        ]
        indexes = [
            models.Index(fields=["taxonomy", "parent"]),
        ]

    def __str__(self):
        if self.parent:
            return f"{self.parent} > {self.name}"
        return self.name

    def save(self, *args, **kwargs):
        if not self.site_id and self.taxonomy_id:
            self.site_id = self.taxonomy.site_id
        if not self.slug:
            self.slug = slugify(self.name)[:cms_settings.SLUG_MAX_LENGTH]
        super().save(*args, **kwargs)

    def clean(self):
        if not self.parent_id:
            return
        if not self.taxonomy.hierarchical:
            raise ValidationError({"parent": "Terms of a flat taxonomy cannot have a parent."})
        if self.parent.taxonomy_id != self.taxonomy_id:
            raise ValidationError({"parent": "Parent term must belong to the same taxonomy."})
        if self.pk and any(t.pk == self.pk for t in self.parent.get_ancestors() + [self.parent]):
            raise ValidationError({"parent": "A term cannot be nested under itself."})

    def get_absolute_url(self):
        from ..permalinks import build_path_url

        return build_path_url(f"{self.taxonomy.slug}/{self.slug}")

    @property
    def post_count(self):
        """Return count of published posts with this term."""
        return self.posts.filter(status="published").count()

    def get_ancestors(self):
        """Return list of ancestor terms from root to parent."""
        ancestors = []
        seen = {self.pk}
        current = self.parent
        while current and current.pk not in seen and len(ancestors) < cms_settings.HIERARCHY_MAX_DEPTH:
            ancestors.insert(0, current)
            seen.add(current.pk)
            current = current.parent
        return ancestors

    def get_descendants(self):
        """Return all descendant terms, depth first. Cycles are cut."""
        descendants = []
        seen = {self.pk}
        stack = list(self.children.all())[::-1]
        while stack:
            child = stack.pop()
            if child.pk in seen:
                continue
            seen.add(child.pk)
            descendants.append(child)
            stack.extend(list(child.children.all())[::-1])
        return descendants


class PostTerm(models.Model):
    """
    Junction table linking posts to terms.

    order keeps the editor's ordering of terms within a post.
    """

    post = models.ForeignKey("cms_engine.Post", on_delete=models.CASCADE)
    term = models.ForeignKey(Term, on_delete=models.CASCADE)
    order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["order", "id"]
        verbose_name = "Post Term"
        constraints = [
            models.UniqueConstraint(fields=["post", "term"], name="cms_post_term_unique"),
        ]

    def __str__(self):
        return f"{self.post} - {self.term}"
