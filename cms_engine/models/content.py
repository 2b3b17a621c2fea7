"""
Post type, Post, PostMeta and PostRevision models for django-cms-engine.
"""
import json

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone
from django.utils.crypto import constant_time_compare
from django.utils.text import slugify

from ..conf import cms_settings
from .sites import Site


def dumps_meta(value):
    """Serialize a meta value to text, leaving strings untouched."""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def loads_meta(value):
    """Decode a meta value stored by dumps_meta, falling back to the raw text."""
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return value


class PostType(models.Model):
    """
    Configurable content schema.

    The slug is the URL base for posts of this type (blank for root-level
    content such as pages). url_structure controls date segments in
    permalinks of non-hierarchical types.
    """

    URL_STRUCTURE_CHOICES = [
        ("default", "/slug"),
        ("year", "/year/slug"),
        ("year_month", "/year/month/slug"),
        ("year_month_day", "/year/month/day/slug"),
    ]

    SUPPORT_CHOICES = [
        "title",
        "editor",
        "thumbnail",
        "excerpt",
        "comments",
        "custom_fields",
        "author",
        "revisions",
        "page_attributes",
    ]

    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name="post_types")
    name = models.SlugField(max_length=50, help_text="Internal name, e.g. post, page, product")
    slug = models.SlugField(
        max_length=100,
        blank=True,
        help_text="URL base for this type. Leave blank to serve from the site root.",
    )
    labels = models.JSONField(default=dict, blank=True)
    description = models.TextField(blank=True)
    hierarchical = models.BooleanField(default=False)
    is_public = models.BooleanField(default=True)
    supports = models.JSONField(default=list, blank=True)
    menu_icon = models.CharField(max_length=50, blank=True)
    menu_position = models.IntegerField(null=True, blank=True)
    show_in_dashboard = models.BooleanField(default=True)
    has_archive = models.BooleanField(default=True)
    url_structure = models.CharField(
        max_length=20,
        choices=URL_STRUCTURE_CHOICES,
        default="default",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["menu_position", "name"]
        verbose_name = "Post Type"
        constraints = [
            models.UniqueConstraint(fields=["site", "name"], name="cms_post_type_unique_name"),
        ]

    def __str__(self):
        return self.label

    @property
    def label(self):
        return self.labels.get("plural_name") or self.name.title()

    @property
    def singular_label(self):
        return self.labels.get("singular_name") or self.name.title()

    def supports_feature(self, feature):
        return feature in self.supports

    def clean(self):
        if self.slug:
            clash = PostType.objects.filter(site_id=self.site_id, slug=self.slug).exclude(pk=self.pk)
            if clash.exists():
                raise ValidationError({"slug": "Another post type already uses this URL base."})


class PostQuerySet(models.QuerySet):
    """Common filters for posts."""

    def for_site(self, site):
        return self.filter(site=site)

    def published(self):
        return self.filter(status=Post.STATUS_PUBLISHED)

    def public(self):
        return self.published().filter(
            visibility__in=[Post.VISIBILITY_PUBLIC, Post.VISIBILITY_PASSWORD],
            post_type__is_public=True,
        )

    def trashed(self):
        return self.filter(status=Post.STATUS_TRASH)

    def not_trashed(self):
        return self.exclude(status=Post.STATUS_TRASH)

    def due_for_publication(self, now=None):
        now = now or timezone.now()
        return self.filter(status=Post.STATUS_SCHEDULED, scheduled_at__lte=now)


class Post(models.Model):
    """
    A content item of any post type.

    Supports:
    - Draft / pending review / scheduled / published / trash workflow
    - Public, private and password-protected visibility
    - Parent/child nesting for hierarchical post types
    - Terms from any taxonomy attached to the post type
    """

    STATUS_DRAFT = "draft"
    STATUS_PENDING = "pending"
    STATUS_SCHEDULED = "scheduled"
    STATUS_PUBLISHED = "published"
    STATUS_TRASH = "trash"
    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_PENDING, "Pending Review"),
        (STATUS_SCHEDULED, "Scheduled"),
        (STATUS_PUBLISHED, "Published"),
        (STATUS_TRASH, "Trash"),
    ]

    VISIBILITY_PUBLIC = "public"
    VISIBILITY_PRIVATE = "private"
    VISIBILITY_PASSWORD = "password"
    VISIBILITY_CHOICES = [
        (VISIBILITY_PUBLIC, "Public"),
        (VISIBILITY_PRIVATE, "Private"),
        (VISIBILITY_PASSWORD, "Password protected"),
    ]

    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name="posts")
    post_type = models.ForeignKey(PostType, on_delete=models.CASCADE, related_name="posts")

    # Content
    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, blank=True, db_index=True)
    content = models.TextField(blank=True)
    excerpt = models.TextField(
        blank=True,
        help_text="Optional manual excerpt. Auto-generated if blank.",
    )

    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="cms_posts",
    )
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="children",
    )
    featured_image = models.ForeignKey(
        "cms_engine.Media",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="featured_in",
    )

    # Status
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_DRAFT,
        db_index=True,
    )
    visibility = models.CharField(
        max_length=20,
        choices=VISIBILITY_CHOICES,
        default=VISIBILITY_PUBLIC,
    )
    password = models.CharField(max_length=255, blank=True)
    comment_status = models.CharField(
        max_length=10,
        choices=[("open", "Open"), ("closed", "Closed")],
        default="open",
    )
    menu_order = models.IntegerField(default=0)
    view_count = models.PositiveIntegerField(default=0)

    # Scheduled publishing
    scheduled_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Publish the post automatically at this time",
    )
    published_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When post was actually published",
    )
    trashed_at = models.DateTimeField(null=True, blank=True)

    # Taxonomy
    terms = models.ManyToManyField(
        "cms_engine.Term",
        through="cms_engine.PostTerm",
        related_name="posts",
        blank=True,
    )

    # Timestamps
    created_at = models.DateTimeField(db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PostQuerySet.as_manager()

    class Meta:
        ordering = ["-published_at", "-created_at"]
        indexes = [
            models.Index(fields=["site", "post_type", "status"]),
            models.Index(fields=["site", "-published_at"]),
            models.Index(fields=["site", "author"]),
        ]
        constraints = [
            models.UniqueConstraint(fields=["site", "slug"], name="cms_post_unique_slug"),
        ]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        # Auto-generate a site-unique slug from title
        if not self.slug:
            self.slug = self._unique_slug(slugify(self.title) or self.post_type.name)

        # Set created_at if not set
        if not self.created_at:
            self.created_at = timezone.now()

        # Set published_at when transitioning to published
        if self.status == self.STATUS_PUBLISHED and not self.published_at:
            self.published_at = timezone.now()

        super().save(*args, **kwargs)

    def _unique_slug(self, base):
        base_slug = base[:cms_settings.SLUG_MAX_LENGTH]
        slug = base_slug
        counter = 1
        while Post.objects.filter(site_id=self.site_id, slug=slug).exclude(pk=self.pk).exists():
            slug = f"{base_slug}-{counter}"
            counter += 1
        return slug

    def clean(self):
        errors = {}
        if self.parent_id:
            if not self.post_type.hierarchical:
                errors["parent"] = "Only hierarchical post types can have a parent."
            elif self.parent.site_id != self.site_id or self.parent.post_type_id != self.post_type_id:
                errors["parent"] = "Parent must be of the same site and post type."
            elif self.pk and any(ancestor.pk == self.pk for ancestor in self.parent.get_ancestors() + [self.parent]):
                errors["parent"] = "A post cannot be nested under itself."
        if self.visibility == self.VISIBILITY_PASSWORD and not self.password:
            errors["password"] = "Password-protected posts need a password."
        if self.status == self.STATUS_SCHEDULED and not self.scheduled_at:
            errors["scheduled_at"] = "Scheduled posts need a publication time."
        if errors:
            raise ValidationError(errors)

    def get_absolute_url(self):
        from ..permalinks import build_post_url

        return build_post_url(self)

    @property
    def preview(self):
        """Return truncated content for listings."""
        if self.excerpt:
            return self.excerpt
        if len(self.content) > 280:
            return self.content[:280] + "..."
        return self.content

    @property
    def is_published(self):
        return self.status == self.STATUS_PUBLISHED

    @property
    def is_scheduled(self):
        """Check if post is scheduled for future publication."""
        if self.status != self.STATUS_SCHEDULED or not self.scheduled_at:
            return False
        return self.scheduled_at > timezone.now()

    @property
    def time_until_publish(self):
        """Return timedelta until scheduled publish time."""
        if not self.is_scheduled:
            return None
        return self.scheduled_at - timezone.now()

    def get_ancestors(self):
        """Return list of ancestor posts from root to parent."""
        ancestors = []
        seen = {self.pk}
        current = self.parent
        while current and current.pk not in seen and len(ancestors) < cms_settings.HIERARCHY_MAX_DEPTH:
            ancestors.insert(0, current)
            seen.add(current.pk)
            current = current.parent
        return ancestors

    def can_view(self, user):
        """Check if user has permission to view this post."""
        from ..permissions import can_edit_post

        # Editors can always preview
        if user is not None and user.is_authenticated and can_edit_post(user, self):
            return True

        if self.status != self.STATUS_PUBLISHED or not self.post_type.is_public:
            return False

        # Private posts only for editors
        if self.visibility == self.VISIBILITY_PRIVATE:
            return False

        # Public and password-protected posts; the password gate is in the view
        return True

    def check_password(self, raw_password):
        if self.visibility != self.VISIBILITY_PASSWORD:
            return False
        return constant_time_compare(raw_password or "", self.password)

    def publish(self, when=None):
        """Publish the post immediately."""
        self.status = self.STATUS_PUBLISHED
        self.published_at = when or timezone.now()
        self.scheduled_at = None
        self.save(update_fields=["status", "published_at", "scheduled_at", "updated_at"])

    def schedule(self, when):
        """Schedule the post for publication at a future time."""
        if when <= timezone.now():
            raise ValidationError({"scheduled_at": "Scheduled time must be in the future."})
        self.status = self.STATUS_SCHEDULED
        self.scheduled_at = when
        self.save(update_fields=["status", "scheduled_at", "updated_at"])

    def trash(self):
        """Move the post to the trash."""
        self.status = self.STATUS_TRASH
        self.trashed_at = timezone.now()
        self.save(update_fields=["status", "trashed_at", "updated_at"])

    def restore(self):
        """Restore a trashed post as a draft."""
        if self.status != self.STATUS_TRASH:
            raise ValidationError("Post is not in trash.")
        self.status = self.STATUS_DRAFT
        self.trashed_at = None
        self.save(update_fields=["status", "trashed_at", "updated_at"])

    def increment_view_count(self):
        """Increment view count atomically."""
        Post.objects.filter(pk=self.pk).update(view_count=models.F("view_count") + 1)

    def get_terms(self, taxonomy=None):
        """Return terms attached to this post, optionally for one taxonomy."""
        from .taxonomy import PostTerm

        links = PostTerm.objects.filter(post=self).select_related("term__taxonomy")
        if taxonomy is not None:
            links = links.filter(term__taxonomy=taxonomy)
        return [link.term for link in links.order_by("order", "term__name")]

    def set_terms(self, taxonomy, terms):
        """Replace this post's terms in one taxonomy, keeping the given order."""
        from .taxonomy import PostTerm

        PostTerm.objects.filter(post=self, term__taxonomy=taxonomy).delete()
        PostTerm.objects.bulk_create([
            PostTerm(post=self, term=term, order=index)
            for index, term in enumerate(terms)
        ])

    def get_meta(self, key, default=None):
        item = self.meta.filter(key=key).first()
        if item is None:
            return default
        return loads_meta(item.value)

    def set_meta(self, key, value):
        item, _ = PostMeta.objects.update_or_create(
            post=self, key=key, defaults={"value": dumps_meta(value)}
        )
        return item

    def get_meta_dict(self):
        return {item.key: loads_meta(item.value) for item in self.meta.all()}


class PostMeta(models.Model):
    """Custom field attached to a post (SEO title, custom fields, ...)."""

    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name="meta")
    key = models.CharField(max_length=255, db_index=True)
    value = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["key"]
        verbose_name = "Post Meta"
        verbose_name_plural = "Post Meta"
        constraints = [
            models.UniqueConstraint(fields=["post", "key"], name="cms_post_meta_unique"),
        ]

    def __str__(self):
        return f"{self.post}: {self.key}"


class PostRevision(models.Model):
    """Snapshot of a post's title, content and excerpt."""

    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name="revisions")
    title = models.CharField(max_length=255)
    content = models.TextField(blank=True)
    excerpt = models.TextField(blank=True)
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="cms_revisions",
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "Post Revision"

    def __str__(self):
        return f"{self.post} @ {self.created_at:%Y-%m-%d %H:%M}"
