"""
Django admin configuration for cms_engine.
"""
from django.contrib import admin
from django.utils.html import format_html

from .activity import log_activity
from .conf import cms_settings
from .forms import MediaAdminForm
from .models import (
    ActivityLog,
    ApiKey,
    GlobalSetting,
    Media,
    MediaFolder,
    Menu,
    MenuItem,
    MenuItemMeta,
    MenuLocation,
    Post,
    PostMeta,
    PostRevision,
    PostTerm,
    PostType,
    Role,
    Setting,
    Site,
    SiteUser,
    Taxonomy,
    Term,
)
from .permissions import get_available_sites


class SiteScopedAdmin(admin.ModelAdmin):
    """
    Limit non-superusers to objects of the sites they belong to.

    site_field is the lookup path from the model to its Site.
    """

    site_field = "site"

    def get_queryset(self, request):
        queryset = super().get_queryset(request)
        if request.user.is_superuser:
            return queryset
        return queryset.filter(**{f"{self.site_field}__in": get_available_sites(request.user)})

    def formfield_for_foreignkey(self, db_field, request, **kwargs):
        if db_field.name == "site" and not request.user.is_superuser:
            kwargs["queryset"] = get_available_sites(request.user)
        return super().formfield_for_foreignkey(db_field, request, **kwargs)


class SiteUserInline(admin.TabularInline):
    model = SiteUser
    extra = 1
    raw_id_fields = ["user"]


@admin.register(Site)
class SiteAdmin(admin.ModelAdmin):
    list_display = ["display_name", "name", "domain", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "display_name", "domain"]
    prepopulated_fields = {"name": ("display_name",)}
    inlines = [SiteUserInline]

    def get_queryset(self, request):
        queryset = super().get_queryset(request)
        if request.user.is_superuser:
            return queryset
        return queryset.filter(pk__in=get_available_sites(request.user))


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ["label", "name", "is_system", "member_count"]
    list_filter = ["is_system"]
    search_fields = ["name", "label"]
    readonly_fields = ["created_at", "updated_at"]

    def member_count(self, obj):
        return obj.memberships.count()

    member_count.short_description = "Members"

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.is_system:
            return False
        return super().has_delete_permission(request, obj)


@admin.register(SiteUser)
class SiteUserAdmin(SiteScopedAdmin):
    list_display = ["user", "site", "role", "assigned_at"]
    list_filter = ["site", "role"]
    search_fields = ["user__username", "user__email"]
    raw_id_fields = ["user"]


@admin.register(GlobalSetting)
class GlobalSettingAdmin(admin.ModelAdmin):
    list_display = ["key", "value_type", "value", "updated_at"]
    list_filter = ["value_type"]
    search_fields = ["key", "description"]


@admin.register(ApiKey)
class ApiKeyAdmin(SiteScopedAdmin):
    list_display = ["__str__", "user", "site", "is_active", "expires_at", "last_used_at", "usage_count"]
    list_filter = ["is_active", "site"]
    search_fields = ["name", "user__username"]
    raw_id_fields = ["user"]
    readonly_fields = ["key", "last_used_at", "usage_count", "created_at"]


@admin.register(PostType)
class PostTypeAdmin(SiteScopedAdmin):
    list_display = ["name", "slug", "site", "hierarchical", "is_public", "has_archive", "menu_position"]
    list_filter = ["site", "hierarchical", "is_public"]
    search_fields = ["name", "slug", "description"]


class PostMetaInline(admin.TabularInline):
    model = PostMeta
    extra = 0


class PostTermInline(admin.TabularInline):
    model = PostTerm
    extra = 1
    raw_id_fields = ["term"]
    fields = ["term", "order"]


class PostRevisionInline(admin.TabularInline):
    model = PostRevision
    extra = 0
    fields = ["title", "author", "created_at"]
    readonly_fields = ["title", "author", "created_at"]
    can_delete = False
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Post)
class PostAdmin(SiteScopedAdmin):
    list_display = [
        "title_preview",
        "post_type",
        "site",
        "author",
        "status",
        "visibility",
        "view_count",
        "published_at",
    ]
    list_filter = ["site", "post_type", "status", "visibility", "created_at"]
    search_fields = ["title", "content", "author__username"]
    raw_id_fields = ["author", "parent", "featured_image"]
    date_hierarchy = "created_at"
    inlines = [PostTermInline, PostMetaInline, PostRevisionInline]
    readonly_fields = ["view_count", "trashed_at", "created_at", "updated_at"]
    prepopulated_fields = {"slug": ("title",)}

    fieldsets = (
        (None, {
            "fields": ("site", "post_type", "title", "slug", "content", "excerpt", "author")
        }),
        ("Structure", {
            "fields": ("parent", "menu_order", "featured_image")
        }),
        ("Visibility & Status", {
            "fields": ("status", "visibility", "password", "comment_status")
        }),
        ("Scheduling", {
            "fields": ("scheduled_at", "published_at"),
            "classes": ("collapse",),
        }),
        ("Metadata", {
            "fields": ("view_count", "trashed_at", "created_at", "updated_at"),
            "classes": ("collapse",),
        }),
    )

    actions = ["publish_posts", "trash_posts", "restore_posts"]

    def title_preview(self, obj):
        """Truncated title for list display."""
        return obj.title[:60] + "..." if len(obj.title) > 60 else obj.title

    title_preview.short_description = "Title"

    def save_model(self, request, obj, form, change):
        if not change and obj.author_id is None:
            obj.author = request.user
        super().save_model(request, obj, form, change)
        log_activity(
            "post_update" if change else "post_create",
            user=request.user,
            site=obj.site,
            entity=obj,
            request=request,
        )

    @admin.action(description="Publish selected posts")
    def publish_posts(self, request, queryset):
        count = 0
        for post in queryset.exclude(status=Post.STATUS_PUBLISHED):
            post.publish()
            log_activity("post_publish", user=request.user, site=post.site, entity=post, request=request)
            count += 1
        self.message_user(request, f"{count} posts published.")

    @admin.action(description="Move selected posts to trash")
    def trash_posts(self, request, queryset):
        count = 0
        for post in queryset.exclude(status=Post.STATUS_TRASH):
            post.trash()
            log_activity("post_trash", user=request.user, site=post.site, entity=post, request=request)
            count += 1
        self.message_user(request, f"{count} posts moved to trash.")

    @admin.action(description="Restore selected posts from trash")
    def restore_posts(self, request, queryset):
        count = 0
        for post in queryset.filter(status=Post.STATUS_TRASH):
            post.restore()
            log_activity("post_restore", user=request.user, site=post.site, entity=post, request=request)
            count += 1
        self.message_user(request, f"{count} posts restored as drafts.")


@admin.register(PostRevision)
class PostRevisionAdmin(SiteScopedAdmin):
    site_field = "post__site"
    list_display = ["post", "title", "author", "created_at"]
    search_fields = ["title", "post__title"]
    raw_id_fields = ["post", "author"]
    readonly_fields = ["created_at"]


@admin.register(Taxonomy)
class TaxonomyAdmin(SiteScopedAdmin):
    list_display = ["name", "slug", "site", "hierarchical", "is_public", "term_count"]
    list_filter = ["site", "hierarchical", "is_public"]
    search_fields = ["name", "slug", "description"]
    filter_horizontal = ["post_types"]

    def term_count(self, obj):
        return obj.terms.count()

    term_count.short_description = "Terms"


@admin.register(Term)
class TermAdmin(SiteScopedAdmin):
    list_display = ["name", "taxonomy", "parent", "slug", "site", "post_count"]
    list_filter = ["site", "taxonomy"]
    search_fields = ["name", "slug", "description"]
    prepopulated_fields = {"slug": ("name",)}
    raw_id_fields = ["parent"]
    ordering = ["taxonomy__name", "name"]


@admin.register(MediaFolder)
class MediaFolderAdmin(SiteScopedAdmin):
    list_display = ["__str__", "site", "created_at"]
    list_filter = ["site"]
    search_fields = ["name"]
    raw_id_fields = ["parent"]


@admin.register(Media)
class MediaAdmin(SiteScopedAdmin):
    form = MediaAdminForm
    list_display = [
        "thumbnail_preview",
        "original_filename",
        "site",
        "media_type",
        "human_file_size",
        "dimensions",
        "status",
        "uploaded_by",
        "created_at",
    ]
    list_filter = ["site", "media_type", "status", "created_at"]
    search_fields = ["original_filename", "alt_text", "caption"]
    raw_id_fields = ["uploaded_by", "folder"]
    readonly_fields = [
        "content_hash",
        "file_size",
        "width",
        "height",
        "mime_type",
        "sizes",
        "trashed_at",
        "created_at",
        "updated_at",
    ]

    fieldsets = (
        (None, {
            "fields": ("site", "file", "original_filename", "media_type", "folder", "uploaded_by")
        }),
        ("Dimensions & Size", {
            "fields": ("width", "height", "file_size", "mime_type", "sizes")
        }),
        ("Metadata", {
            "fields": ("alt_text", "caption")
        }),
        ("System", {
            "fields": ("content_hash", "status", "trashed_at", "created_at", "updated_at"),
            "classes": ("collapse",),
        }),
    )

    actions = ["trash_media", "restore_media", "regenerate_sizes"]

    def save_model(self, request, obj, form, change):
        upload = form.cleaned_data.get("file")
        if "file" in form.changed_data and upload is not None:
            obj.content_hash = getattr(form, "content_hash", obj.content_hash)
            obj.original_filename = obj.original_filename or upload.name
            obj.file_size = upload.size
            obj.mime_type = getattr(upload, "content_type", "") or obj.mime_type
            obj.media_type = Media.detect_media_type(obj.mime_type)
            obj.uploaded_by = obj.uploaded_by or request.user
        super().save_model(request, obj, form, change)
        if "file" in form.changed_data and obj.is_image:
            obj._extract_image_metadata()
            if cms_settings.GENERATE_IMAGE_SIZES:
                obj.generate_sizes()

    def thumbnail_preview(self, obj):
        if obj.is_image and obj.file:
            return format_html(
                '<img src="{}" style="max-width: 50px; max-height: 50px;" />',
                obj.get_image_url("thumbnail"),
            )
        return obj.media_type

    thumbnail_preview.short_description = "Preview"

    def dimensions(self, obj):
        if obj.width and obj.height:
            return f"{obj.width}x{obj.height}"
        return "-"

    dimensions.short_description = "Size"

    @admin.action(description="Move selected media to trash")
    def trash_media(self, request, queryset):
        count = 0
        for media in queryset.active():
            media.trash()
            log_activity("media_trash", user=request.user, site=media.site, entity=media, request=request)
            count += 1
        self.message_user(request, f"{count} media items moved to trash.")

    @admin.action(description="Restore selected media from trash")
    def restore_media(self, request, queryset):
        count = 0
        for media in queryset.trashed():
            media.restore()
            log_activity("media_restore", user=request.user, site=media.site, entity=media, request=request)
            count += 1
        self.message_user(request, f"{count} media items restored.")

    @admin.action(description="Regenerate image sizes")
    def regenerate_sizes(self, request, queryset):
        count = 0
        for media in queryset:
            if media.is_image:
                media.generate_sizes()
                count += 1
        self.message_user(request, f"Sizes regenerated for {count} images.")


@admin.register(MenuLocation)
class MenuLocationAdmin(SiteScopedAdmin):
    list_display = ["display_name", "name", "site"]
    list_filter = ["site"]
    search_fields = ["name", "display_name"]


class MenuItemInline(admin.TabularInline):
    model = MenuItem
    extra = 1
    fk_name = "menu"
    fields = ["item_type", "object_id", "custom_label", "custom_url", "parent", "menu_order", "target"]
    raw_id_fields = ["parent"]
    show_change_link = True


@admin.register(Menu)
class MenuAdmin(SiteScopedAdmin):
    list_display = ["display_name", "name", "site", "location", "item_count", "updated_at"]
    list_filter = ["site"]
    search_fields = ["name", "display_name"]
    inlines = [MenuItemInline]

    def item_count(self, obj):
        return obj.items.count()

    item_count.short_description = "Items"


class MenuItemMetaInline(admin.TabularInline):
    model = MenuItemMeta
    extra = 1


@admin.register(MenuItem)
class MenuItemAdmin(SiteScopedAdmin):
    site_field = "menu__site"
    list_display = ["__str__", "menu", "item_type", "object_id", "parent", "menu_order"]
    list_filter = ["item_type", "menu__site"]
    search_fields = ["custom_label", "custom_url"]
    raw_id_fields = ["menu", "parent"]
    inlines = [MenuItemMetaInline]


@admin.register(Setting)
class SettingAdmin(SiteScopedAdmin):
    list_display = ["key", "site", "group", "value_type", "value", "is_public"]
    list_filter = ["site", "group", "value_type", "is_public"]
    search_fields = ["key", "label", "description"]


@admin.register(ActivityLog)
class ActivityLogAdmin(SiteScopedAdmin):
    list_display = ["created_at", "action", "user", "site", "entity_type", "entity_name", "ip_address"]
    list_filter = ["action", "site", "entity_type", "created_at"]
    search_fields = ["entity_name", "details", "user__username", "ip_address"]
    date_hierarchy = "created_at"
    readonly_fields = [field.name for field in ActivityLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
