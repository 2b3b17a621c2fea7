"""
Post endpoints: CRUD, trash, revisions, autosave and scheduled publishing.
"""
import logging

from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.crypto import constant_time_compare

from ...conf import cms_settings
from ...models import Media, Post, PostType, Taxonomy
from ...permissions import (
    can_create_post,
    can_delete_post,
    can_edit_post,
    can_publish_post,
    content_scope,
    has_permission,
)
from ...publishing import publish_due_posts
from ...revisions import (
    create_revision,
    discard_autosave,
    load_autosave,
    restore_revision,
    store_autosave,
)
from ..base import ApiView
from ..response import ApiError, api_success
from ..serializers import serialize_post, serialize_revision
from ..validation import (
    parse_bool,
    parse_datetime_value,
    parse_include,
    parse_int,
    parse_sort,
    require_fields,
    validate_choice,
    validate_slug,
)

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "id": "id",
    "title": "title",
    "created_at": "created_at",
    "updated_at": "updated_at",
    "published_at": "published_at",
    "author_id": "author_id",
    "menu_order": "menu_order",
}
WRITABLE_STATUSES = [
    Post.STATUS_DRAFT,
    Post.STATUS_PENDING,
    Post.STATUS_SCHEDULED,
    Post.STATUS_PUBLISHED,
]
VISIBILITIES = [choice for choice, _ in Post.VISIBILITY_CHOICES]
REVISION_FIELDS = ("title", "content", "excerpt")


def _resolve_terms(site, terms_data):
    """Map {taxonomy name: [term id or slug, ...]} to (taxonomy, [terms]) pairs."""
    if not isinstance(terms_data, dict):
        raise ApiError.validation("terms must be an object keyed by taxonomy", "terms")
    resolved = []
    for taxonomy_name, values in terms_data.items():
        taxonomy = Taxonomy.objects.filter(site=site, name=taxonomy_name).first()
        if taxonomy is None:
            raise ApiError.validation(f"Unknown taxonomy: {taxonomy_name}", "terms")
        terms = []
        for value in values or []:
            lookup = {"pk": value} if isinstance(value, int) else {"slug": value}
            term = taxonomy.terms.filter(**lookup).first()
            if term is None:
                raise ApiError.validation(f"Unknown {taxonomy_name} term: {value}", "terms")
            terms.append(term)
        resolved.append((taxonomy, terms))
    return resolved


class PostWriteMixin:
    """Apply a JSON payload to a post, enforcing publishing rights."""

    def apply_post_data(self, post, data):
        if "title" in data:
            post.title = str(data["title"]).strip()
        for field in ("content", "excerpt", "password", "comment_status"):
            if field in data:
                setattr(post, field, data[field] or "")
        if data.get("slug"):
            post.slug = validate_slug(data["slug"])
        if "visibility" in data:
            post.visibility = validate_choice(data["visibility"], "visibility", VISIBILITIES)
        if "menu_order" in data:
            post.menu_order = parse_int(data["menu_order"], "menu_order") or 0
        if "parent_id" in data:
            parent_id = parse_int(data["parent_id"], "parent_id")
            if parent_id is not None and not Post.objects.filter(site=self.site, pk=parent_id).exists():
                raise ApiError.validation("Parent post not found", "parent_id")
            post.parent_id = parent_id
        if "featured_image_id" in data:
            media_id = parse_int(data["featured_image_id"], "featured_image_id")
            if media_id is not None and not Media.objects.filter(site=self.site, pk=media_id).exists():
                raise ApiError.validation("Featured image not found", "featured_image_id")
            post.featured_image_id = media_id
        if "scheduled_at" in data:
            post.scheduled_at = parse_datetime_value(data["scheduled_at"], "scheduled_at")
        if "status" in data:
            self.apply_status(post, validate_choice(data["status"], "status", WRITABLE_STATUSES))

        post.clean()

    def apply_status(self, post, status):
        if status in (Post.STATUS_PUBLISHED, Post.STATUS_SCHEDULED):
            if not can_publish_post(self.user, self.site, post.post_type):
                # Contributors submit for review instead
                status = Post.STATUS_PENDING
        if status == Post.STATUS_SCHEDULED:
            if post.scheduled_at is None:
                raise ApiError.validation("scheduled_at is required for scheduled posts", "scheduled_at")
            if post.scheduled_at <= timezone.now():
                raise ApiError.validation("scheduled_at must be in the future", "scheduled_at")
        if status == Post.STATUS_PUBLISHED and post.status != Post.STATUS_PUBLISHED:
            post.published_at = None
            post.scheduled_at = None
        post.status = status

    def save_relations(self, post, data):
        if "meta" in data:
            if not isinstance(data["meta"], dict):
                raise ApiError.validation("meta must be an object", "meta")
            for key, value in data["meta"].items():
                post.set_meta(key, value)
        if "terms" in data:
            for taxonomy, terms in _resolve_terms(self.site, data["terms"]):
                post.set_terms(taxonomy, terms)


class PostCollectionView(PostWriteMixin, ApiView):
    """List and create posts of the current site."""

    def get(self, request):
        posts = Post.objects.for_site(self.site).select_related("post_type", "author", "featured_image")

        post_type = request.GET.get("post_type", "post")
        if post_type != "any":
            posts = posts.filter(post_type__name=post_type)

        status = request.GET.get("status")
        if status:
            validate_choice(status, "status", [choice for choice, _ in Post.STATUS_CHOICES] + ["any"])
            if status != "any":
                posts = posts.filter(status=status)
        else:
            posts = posts.not_trashed()

        author_id = parse_int(request.GET.get("author_id"), "author_id")
        if author_id is not None:
            posts = posts.filter(author_id=author_id)
        parent_id = request.GET.get("parent_id")
        if parent_id is not None:
            posts = posts.filter(parent_id=parse_int(parent_id, "parent_id"))
        term_id = parse_int(request.GET.get("term_id"), "term_id")
        if term_id is not None:
            posts = posts.filter(terms__pk=term_id)

        date_from = parse_datetime_value(request.GET.get("date_from"), "date_from")
        if date_from:
            posts = posts.filter(created_at__gte=date_from)
        date_to = parse_datetime_value(request.GET.get("date_to"), "date_to")
        if date_to:
            posts = posts.filter(created_at__lte=date_to)

        search = request.GET.get("search", "").strip()
        if search:
            posts = posts.filter(Q(title__icontains=search) | Q(content__icontains=search))

        # Without the *_all grant, users see published posts and their own
        scopes = {"posts", "pages"} if post_type == "any" else {content_scope(post_type)}
        if not all(has_permission(self.user, self.site, f"manage_{scope}_all") for scope in scopes):
            posts = posts.filter(Q(status=Post.STATUS_PUBLISHED) | Q(author=self.user))

        posts = posts.order_by(parse_sort(request, SORT_FIELDS, "-created_at"), "-id").distinct()
        include = parse_include(request)
        return self.paginate(posts, lambda post: serialize_post(post, include))

    def post(self, request):
        data = self.get_data()
        require_fields(data, ["title"])
        type_name = data.get("post_type", "post")
        post_type = PostType.objects.filter(site=self.site, name=type_name).first()
        if post_type is None:
            raise ApiError.validation(f"Unknown post type: {type_name}", "post_type")
        if not can_create_post(self.user, self.site, post_type):
            raise ApiError.insufficient_permissions()

        post = Post(site=self.site, post_type=post_type, author=self.user)
        with transaction.atomic():
            self.apply_post_data(post, data)
            post.save()
            self.save_relations(post, data)

        self.log("post_create", post, after={"status": post.status})
        return api_success(serialize_post(post, full=True), status=201)


class PostDetailApiView(PostWriteMixin, ApiView):
    """Read, update, trash or delete a post."""

    def get_post(self, pk):
        return self.get_site_object(Post.objects.select_related("post_type", "author"), pk, "Post")

    def get(self, request, pk):
        post = self.get_post(pk)
        if not (post.is_published or can_edit_post(self.user, post)):
            raise ApiError.not_found("Post", pk)
        return api_success(serialize_post(post, full=True))

    def put(self, request, pk):
        post = self.get_post(pk)
        if not can_edit_post(self.user, post):
            raise ApiError.insufficient_permissions()
        if post.status == Post.STATUS_TRASH:
            raise ApiError.unprocessable("Restore the post before editing it")

        data = self.get_data()
        before = {"status": post.status, "title": post.title}
        was_published = post.is_published
        with transaction.atomic():
            if any(field in data and data[field] != getattr(post, field) for field in REVISION_FIELDS):
                create_revision(post, self.user)
            self.apply_post_data(post, data)
            post.save()
            self.save_relations(post, data)

        self.log("post_update", post, before=before, after={"status": post.status, "title": post.title})
        if post.is_published and not was_published:
            self.log("post_publish", post)
        return api_success(serialize_post(post, full=True))

    patch = put

    def delete(self, request, pk):
        post = self.get_post(pk)
        if not can_delete_post(self.user, post):
            raise ApiError.insufficient_permissions()

        if parse_bool(request.GET.get("force", False)):
            title = post.title
            post.delete()
            self.log("post_delete", entity_type="post", entity_id=pk, entity_name=title)
            return api_success({"id": pk, "deleted": True})

        post.trash()
        self.log("post_trash", post)
        return api_success(serialize_post(post))


class PostRestoreView(ApiView):
    """Bring a trashed post back as a draft."""

    def post(self, request, pk):
        post = self.get_site_object(Post.objects.select_related("post_type"), pk, "Post")
        if not can_delete_post(self.user, post):
            raise ApiError.insufficient_permissions()
        if post.status != Post.STATUS_TRASH:
            raise ApiError.unprocessable("Post is not in trash")
        post.restore()
        self.log("post_restore", post)
        return api_success(serialize_post(post))


class EmptyTrashView(ApiView):
    """Permanently delete every trashed post of the site."""

    def delete(self, request):
        posts = Post.objects.for_site(self.site).trashed()
        post_type = request.GET.get("post_type")
        if post_type:
            posts = posts.filter(post_type__name=post_type)
            self.require_permission(f"manage_{content_scope(post_type)}_all")
        else:
            self.require_permission("manage_posts_all")
            self.require_permission("manage_pages_all")
        deleted = posts.count()
        posts.delete()
        self.log("post_delete", entity_type="post", details=f"Emptied trash ({deleted} posts)")
        return api_success({"deleted": deleted})


class PostRevisionsView(ApiView):
    """List a post's revisions, newest first."""

    def get(self, request, pk):
        post = self.get_site_object(Post.objects.select_related("post_type"), pk, "Post")
        if not can_edit_post(self.user, post):
            raise ApiError.insufficient_permissions()
        return self.paginate(post.revisions.all(), serialize_revision)


class RevisionRestoreView(ApiView):
    """Copy a revision back onto its post."""

    def post(self, request, pk, revision_id):
        post = self.get_site_object(Post.objects.select_related("post_type"), pk, "Post")
        if not can_edit_post(self.user, post):
            raise ApiError.insufficient_permissions()
        revision = post.revisions.filter(pk=revision_id).first()
        if revision is None:
            raise ApiError.not_found("Revision", revision_id)
        post = restore_revision(revision, self.user)
        self.log("revision_restore", post, details=f"Restored revision {revision_id}")
        return api_success(serialize_post(post, full=True))


class AutosaveView(ApiView):
    """
    Per-user editor drafts.

    With a post id the draft belongs to that post; without one it belongs
    to a new post of ?post_type= (default post).
    """

    def get_target(self, pk):
        if pk is None:
            return None, self.request.GET.get("post_type", "post")
        post = self.get_site_object(Post.objects.select_related("post_type"), pk, "Post")
        if not can_edit_post(self.user, post):
            raise ApiError.insufficient_permissions()
        return post, None

    def get(self, request, pk=None):
        post, post_type = self.get_target(pk)
        return api_success(load_autosave(self.user, self.site, post, post_type))

    def post(self, request, pk=None):
        post, post_type = self.get_target(pk)
        data = self.get_data()
        draft = {field: data.get(field, "") for field in REVISION_FIELDS}
        if "meta" in data:
            draft["meta"] = data["meta"]
        saved_at = store_autosave(self.user, self.site, draft, post, post_type)
        return api_success({"saved_at": saved_at})

    def delete(self, request, pk=None):
        post, post_type = self.get_target(pk)
        return api_success({"deleted": discard_autosave(self.user, self.site, post, post_type)})


class ProcessScheduledView(ApiView):
    """
    Publish due scheduled posts on every site.

    Callable by cron with the X-Cron-Secret header, or by a super admin.
    """

    auth_required = False
    site_required = False

    def post(self, request):
        secret = cms_settings.CRON_SECRET
        provided = request.META.get("HTTP_X_CRON_SECRET", "")
        if not (secret and provided and constant_time_compare(secret, provided)):
            if self.auth is None:
                raise ApiError.unauthorized()
            self.require_superuser()

        processed, sites_checked = publish_due_posts()
        logger.info("Scheduled publishing: %s posts across %s sites", processed, sites_checked)
        return api_success({"processed": processed, "sites_checked": sites_checked})

    get = post
