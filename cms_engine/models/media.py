"""
Media library models for django-cms-engine.

Features content-addressed storage with SHA256 deduplication per site
and Pillow-generated image sizes.
"""
import hashlib
import logging
import os
from io import BytesIO

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.files.base import ContentFile
from django.db import models
from django.utils import timezone

from ..conf import cms_settings
from .sites import Site

logger = logging.getLogger(__name__)


def get_upload_path(instance, filename):
    """Generate a per-site upload path for media files."""
    path = cms_settings.MEDIA_UPLOAD_PATH.format(site_id=instance.site_id)
    return timezone.now().strftime(path) + filename


class MediaFolder(models.Model):
    """Folder for organizing a site's media library."""

    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name="media_folders")
    name = models.CharField(max_length=255)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="children",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "Media Folder"
        indexes = [models.Index(fields=["site", "name"])]

    def __str__(self):
        if self.parent:
            return f"{self.parent} / {self.name}"
        return self.name


class MediaQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status=Media.STATUS_ACTIVE)

    def trashed(self):
        return self.filter(status=Media.STATUS_TRASH)


class Media(models.Model):
    """
    Site media library item with content-based deduplication.

    Files are stored once per site and referenced by SHA256 content hash.
    Multiple posts can share the same file without re-uploading.
    """

    TYPE_CHOICES = [
        ("IMAGE", "Image"),
        ("VIDEO", "Video"),
        ("GIF", "GIF"),
        ("DOCUMENT", "Document"),
        ("AUDIO", "Audio"),
    ]

    STATUS_ACTIVE = "active"
    STATUS_TRASH = "trash"
    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_TRASH, "Trash"),
    ]

    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name="media")
    file = models.FileField(upload_to=get_upload_path, max_length=500)
    content_hash = models.CharField(
        max_length=64,
        db_index=True,
        help_text="SHA256 hash of file content for deduplication",
    )
    media_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default="IMAGE")
    original_filename = models.CharField(max_length=255)
    file_size = models.PositiveIntegerField(default=0, help_text="File size in bytes")
    width = models.PositiveIntegerField(null=True, blank=True)
    height = models.PositiveIntegerField(null=True, blank=True)
    mime_type = models.CharField(max_length=100, blank=True)
    sizes = models.JSONField(
        default=dict,
        blank=True,
        help_text="Generated image sizes: {name: {url, path, width, height}}",
    )

    alt_text = models.TextField(blank=True)
    caption = models.TextField(blank=True)

    folder = models.ForeignKey(
        MediaFolder,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="items",
    )
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="uploaded_cms_media",
    )

    status = models.CharField(
        max_length=10,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        db_index=True,
    )
    trashed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = MediaQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Media Item"
        verbose_name_plural = "Media Library"
        indexes = [models.Index(fields=["site", "status"])]
        constraints = [
            models.UniqueConstraint(fields=["site", "content_hash"], name="cms_media_unique_hash"),
        ]

    def __str__(self):
        return f"{self.original_filename} ({self.media_type})"

    @property
    def file_url(self):
        """Return URL to the file."""
        if self.file:
            return self.file.url
        return None

    @property
    def file_extension(self):
        """Return file extension."""
        if self.original_filename:
            return os.path.splitext(self.original_filename)[1].lower()
        return ""

    @property
    def is_image(self):
        return self.media_type in ("IMAGE", "GIF")

    @property
    def is_video(self):
        return self.media_type == "VIDEO"

    @property
    def aspect_ratio(self):
        """Return aspect ratio as float."""
        if self.width and self.height:
            return self.width / self.height
        return None

    @property
    def orientation(self):
        """Return orientation based on dimensions."""
        if not self.width or not self.height:
            return "unknown"
        if self.width > self.height:
            return "landscape"
        elif self.height > self.width:
            return "portrait"
        return "square"

    @property
    def human_file_size(self):
        """Return human-readable file size."""
        size = self.file_size
        for unit in ["B", "KB", "MB", "GB"]:
            if size < 1024:
                return f"{size:.1f} {unit}"
            size /= 1024
        return f"{size:.1f} TB"

    @staticmethod
    def detect_media_type(mime_type):
        """Map a MIME type to a media type."""
        if mime_type.startswith("image/gif"):
            return "GIF"
        elif mime_type.startswith("image/"):
            return "IMAGE"
        elif mime_type.startswith("video/"):
            return "VIDEO"
        elif mime_type.startswith("audio/"):
            return "AUDIO"
        return "DOCUMENT"

    @staticmethod
    def validate_upload(file_obj):
        """
        Check an upload against the allowed types and size limit.

        Raises:
            ValidationError: if the file is not acceptable
        """
        mime_type = getattr(file_obj, "content_type", "") or ""
        if mime_type not in cms_settings.ALLOWED_UPLOAD_TYPES:
            raise ValidationError({"file": f"File type '{mime_type}' is not allowed."})
        max_bytes = cms_settings.MEDIA_MAX_SIZE_MB * 1024 * 1024
        if file_obj.size > max_bytes:
            raise ValidationError({"file": f"File exceeds {cms_settings.MEDIA_MAX_SIZE_MB} MB."})

    @staticmethod
    def compute_hash(file_obj):
        """Return the SHA-256 hex digest of an uploaded file."""
        hasher = hashlib.sha256()
        for chunk in file_obj.chunks():
            hasher.update(chunk)
        file_obj.seek(0)
        return hasher.hexdigest()

    @classmethod
    def get_or_create_from_file(cls, site, file_obj, uploaded_by=None, folder=None):
        """
        Get existing media item or create new one based on content hash.

        This enables deduplication - same file uploaded twice to a site
        returns the same Media instance. A trashed duplicate is restored.

        Args:
            site: Site that owns the item
            file_obj: Django UploadedFile or File object
            uploaded_by: User who uploaded the file
            folder: optional MediaFolder

        Returns:
            (Media instance, created boolean)
        """
        content_hash = cls.compute_hash(file_obj)

        # Check for existing
        existing = cls.objects.filter(site=site, content_hash=content_hash).first()
        if existing:
            if existing.status == cls.STATUS_TRASH:
                existing.restore()
            return existing, False

        mime_type = getattr(file_obj, "content_type", "") or ""
        media_type = cls.detect_media_type(mime_type)

        # Reset file position for save
        file_obj.seek(0)

        item = cls(
            site=site,
            content_hash=content_hash,
            media_type=media_type,
            original_filename=os.path.basename(file_obj.name),
            file_size=file_obj.size,
            mime_type=mime_type,
            uploaded_by=uploaded_by,
            folder=folder,
        )
        item.file.save(os.path.basename(file_obj.name), file_obj, save=False)
        item.save()

        # Extract dimensions for images
        if item.is_image:
            item._extract_image_metadata()
            if cms_settings.GENERATE_IMAGE_SIZES:
                item.generate_sizes()

        return item, True

    def _extract_image_metadata(self):
        """Extract dimensions from image file."""
        from PIL import Image, UnidentifiedImageError

        try:
            with self.file.open("rb") as fh, Image.open(fh) as img:
                self.width, self.height = img.size
        except (OSError, UnidentifiedImageError):
            logger.warning("Could not read image dimensions for media %s", self.pk)
            return
        self.save(update_fields=["width", "height"])

    def get_size_dimensions(self):
        """Return configured target sizes, with per-site setting overrides."""
        dimensions = {}
        for name, (default_width, default_height) in cms_settings.IMAGE_SIZES.items():
            width = self.site.get_setting(f"media_{name}_width", default_width)
            height = self.site.get_setting(f"media_{name}_height", default_height)
            dimensions[name] = (int(width), int(height))
        return dimensions

    def generate_sizes(self):
        """
        Generate resized copies of an image.

        Each size fits within its bounding box, keeping aspect ratio.
        Sizes larger than the original are skipped; 'full' always points
        to the original.
        """
        from PIL import Image, UnidentifiedImageError

        if not self.is_image:
            return {}

        self._delete_size_files()
        storage = self.file.storage
        base, ext = os.path.splitext(self.file.name)
        sizes = {}

        try:
            with self.file.open("rb") as fh, Image.open(fh) as img:
                image_format = img.format or "PNG"
                for name, (width, height) in self.get_size_dimensions().items():
                    if img.width <= width and img.height <= height:
                        continue
                    resized = img.copy()
                    resized.thumbnail((width, height))
                    if image_format == "JPEG" and resized.mode not in ("RGB", "L"):
                        resized = resized.convert("RGB")
                    buffer = BytesIO()
                    resized.save(buffer, format=image_format)
                    path = storage.save(
                        f"{base}-{resized.width}x{resized.height}{ext}",
                        ContentFile(buffer.getvalue()),
                    )
                    sizes[name] = {
                        "url": storage.url(path),
                        "path": path,
                        "width": resized.width,
                        "height": resized.height,
                    }
        except (OSError, UnidentifiedImageError):
            logger.warning("Could not generate sizes for media %s", self.pk)

        sizes["full"] = {
            "url": self.file_url,
            "path": self.file.name,
            "width": self.width,
            "height": self.height,
        }
        self.sizes = sizes
        self.save(update_fields=["sizes", "updated_at"])
        return sizes

    def get_image_url(self, size="full"):
        """Return the URL for a generated size, falling back to the original."""
        entry = self.sizes.get(size) if self.sizes else None
        if entry and entry.get("url"):
            return entry["url"]
        return self.file_url

    def get_srcset(self):
        """Return a responsive srcset string, or None if no sizes exist."""
        entries = []
        for name in ("thumbnail", "medium", "large", "full"):
            entry = (self.sizes or {}).get(name)
            if entry and entry.get("url") and entry.get("width"):
                entries.append(f"{entry['url']} {entry['width']}w")
        return ", ".join(entries) or None

    def usage(self):
        """Return posts that use this item as their featured image."""
        return self.featured_in.not_trashed()

    def trash(self):
        """Move the item to the trash."""
        self.status = self.STATUS_TRASH
        self.trashed_at = timezone.now()
        self.save(update_fields=["status", "trashed_at", "updated_at"])

    def restore(self):
        """Restore a trashed item."""
        self.status = self.STATUS_ACTIVE
        self.trashed_at = None
        self.save(update_fields=["status", "trashed_at", "updated_at"])

    def delete_files(self):
        """Remove the original and generated sizes from storage."""
        self._delete_size_files()
        if self.file:
            self.file.storage.delete(self.file.name)

    def _delete_size_files(self):
        storage = self.file.storage
        for name, entry in (self.sizes or {}).items():
            if name != "full" and entry.get("path"):
                storage.delete(entry["path"])
