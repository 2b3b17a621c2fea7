"""
Media library endpoints.
"""
from django.db.models import Q

from ...models import Media, MediaFolder
from ...permissions import can_manage_media, has_permission
from ..base import ApiView
from ..response import ApiError, api_success
from ..serializers import serialize_folder, serialize_media, serialize_post
from ..validation import parse_bool, parse_int, parse_sort, require_fields, validate_choice

SORT_FIELDS = {
    "id": "id",
    "created_at": "created_at",
    "original_filename": "original_filename",
    "file_size": "file_size",
}
MEDIA_TYPES = [choice for choice, _ in Media.TYPE_CHOICES]


class MediaMixin:

    def require_media_access(self, media=None):
        if not can_manage_media(self.user, self.site, media):
            raise ApiError.insufficient_permissions()

    def get_media(self, pk):
        media = self.get_site_object(Media.objects.select_related("folder"), pk, "Media")
        self.require_media_access(media)
        return media

    def get_folder(self, folder_id, field="folder_id"):
        folder_id = parse_int(folder_id, field)
        if folder_id is None:
            return None
        folder = MediaFolder.objects.filter(site=self.site, pk=folder_id).first()
        if folder is None:
            raise ApiError.validation("Folder not found", field)
        return folder


class MediaCollectionView(MediaMixin, ApiView):
    """List the media library and upload files."""

    def get(self, request):
        self.require_media_access()
        items = Media.objects.filter(site=self.site)

        status = request.GET.get("status", Media.STATUS_ACTIVE)
        validate_choice(status, "status", [Media.STATUS_ACTIVE, Media.STATUS_TRASH])
        items = items.filter(status=status)

        media_type = request.GET.get("media_type")
        if media_type:
            items = items.filter(media_type=validate_choice(media_type.upper(), "media_type", MEDIA_TYPES))
        if "folder_id" in request.GET:
            folder = self.get_folder(request.GET["folder_id"])
            items = items.filter(folder=folder)
        search = request.GET.get("search", "").strip()
        if search:
            items = items.filter(
                Q(original_filename__icontains=search)
                | Q(alt_text__icontains=search)
                | Q(caption__icontains=search)
            )
        if not has_permission(self.user, self.site, "manage_media"):
            items = items.filter(uploaded_by=self.user)

        items = items.order_by(parse_sort(request, SORT_FIELDS, "-created_at"), "-id")
        return self.paginate(items, serialize_media)

    def post(self, request):
        self.require_media_access()
        upload = request.FILES.get("file")
        if upload is None:
            raise ApiError.validation("file is required", "file")
        Media.validate_upload(upload)
        folder = self.get_folder(request.POST.get("folder_id"))

        media, created = Media.get_or_create_from_file(self.site, upload, uploaded_by=self.user, folder=folder)
        changed = []
        for field in ("alt_text", "caption"):
            if request.POST.get(field):
                setattr(media, field, request.POST[field])
                changed.append(field)
        if changed:
            media.save(update_fields=changed + ["updated_at"])

        if created:
            self.log("media_upload", media, after={"file_size": media.file_size, "mime_type": media.mime_type})
        return api_success(serialize_media(media), status=201 if created else 200, meta={"duplicate": not created})


class MediaDetailView(MediaMixin, ApiView):
    """Read, update, trash or delete a media item."""

    def get(self, request, pk):
        media = self.get_media(pk)
        data = serialize_media(media)
        if "usage" in request.GET.get("include", ""):
            data["usage"] = [serialize_post(post) for post in media.usage().select_related("post_type")]
        return api_success(data)

    def put(self, request, pk):
        media = self.get_media(pk)
        data = self.get_data()
        before = {"alt_text": media.alt_text, "caption": media.caption, "folder_id": media.folder_id}
        for field in ("alt_text", "caption"):
            if field in data:
                setattr(media, field, data[field] or "")
        if "folder_id" in data:
            media.folder = self.get_folder(data["folder_id"])
        media.save()
        self.log(
            "media_update",
            media,
            before=before,
            after={"alt_text": media.alt_text, "caption": media.caption, "folder_id": media.folder_id},
        )
        return api_success(serialize_media(media))

    patch = put

    def delete(self, request, pk):
        media = self.get_media(pk)
        if parse_bool(request.GET.get("force", False)):
            name = media.original_filename
            media.delete()
            self.log("media_delete", entity_type="media", entity_id=pk, entity_name=name)
            return api_success({"id": pk, "deleted": True})

        media.trash()
        self.log("media_trash", media)
        return api_success(serialize_media(media))


class MediaRestoreView(MediaMixin, ApiView):
    """Restore a trashed media item."""

    def post(self, request, pk):
        media = self.get_media(pk)
        if media.status != Media.STATUS_TRASH:
            raise ApiError.unprocessable("Media item is not in trash")
        media.restore()
        self.log("media_restore", media)
        return api_success(serialize_media(media))


class MediaRegenerateView(MediaMixin, ApiView):
    """
    Rebuild generated image sizes.

    With a pk, for one item; otherwise for every active image of the site.
    """

    def post(self, request, pk=None):
        if pk is not None:
            media = self.get_media(pk)
            if not media.is_image:
                raise ApiError.unprocessable("Only images have generated sizes")
            media.generate_sizes()
            return api_success(serialize_media(media))

        self.require_permission("manage_media")
        processed = 0
        for media in Media.objects.filter(site=self.site).active().filter(media_type="IMAGE"):
            media.generate_sizes()
            processed += 1
        return api_success({"processed": processed})


class MediaEmptyTrashView(ApiView):
    """Permanently delete every trashed media item of the site."""

    def delete(self, request):
        self.require_permission("manage_media")
        items = Media.objects.filter(site=self.site).trashed()
        deleted = items.count()
        # Deleting through the queryset still fires post_delete, removing files
        items.delete()
        self.log("media_delete", entity_type="media", details=f"Emptied trash ({deleted} items)")
        return api_success({"deleted": deleted})


class FolderCollectionView(MediaMixin, ApiView):
    """List and create media folders."""

    def get(self, request):
        self.require_media_access()
        folders = MediaFolder.objects.filter(site=self.site)
        if "parent_id" in request.GET:
            parent = self.get_folder(request.GET["parent_id"], "parent_id")
            folders = folders.filter(parent=parent)
        return api_success([serialize_folder(folder) for folder in folders])

    def post(self, request):
        self.require_media_access()
        data = self.get_data()
        require_fields(data, ["name"])
        folder = MediaFolder.objects.create(
            site=self.site,
            name=str(data["name"]).strip(),
            parent=self.get_folder(data.get("parent_id"), "parent_id"),
        )
        return api_success(serialize_folder(folder), status=201)


class FolderDetailView(MediaMixin, ApiView):
    """Rename, move or delete a media folder."""

    def put(self, request, pk):
        self.require_media_access()
        folder = self.get_site_object(MediaFolder.objects.all(), pk, "Folder")
        data = self.get_data()
        if data.get("name"):
            folder.name = str(data["name"]).strip()
        if "parent_id" in data:
            parent = self.get_folder(data["parent_id"], "parent_id")
            ancestor = parent
            while ancestor is not None:
                if ancestor.pk == folder.pk:
                    raise ApiError.validation("A folder cannot be moved into itself", "parent_id")
                ancestor = ancestor.parent
            folder.parent = parent
        folder.save()
        return api_success(serialize_folder(folder))

    patch = put

    def delete(self, request, pk):
        self.require_permission("manage_media")
        folder = self.get_site_object(MediaFolder.objects.all(), pk, "Folder")
        folder.delete()
        return api_success({"id": pk, "deleted": True})
