"""
Post type endpoints.
"""
from django.db import transaction

from ...models import PostType, Taxonomy
from ..base import ApiView
from ..response import ApiError, api_success
from ..serializers import serialize_post_type
from ..validation import parse_bool, parse_int, require_fields, validate_choice, validate_slug

BUILTIN_POST_TYPES = ("post", "page")
URL_STRUCTURES = [choice for choice, _ in PostType._meta.get_field("url_structure").choices]


class PostTypeWriteMixin:

    def apply_post_type_data(self, post_type, data):
        if "slug" in data:
            if post_type.pk and post_type.name in BUILTIN_POST_TYPES and data["slug"] != post_type.slug:
                raise ApiError.validation("The URL base of a built-in post type cannot change", "slug")
            post_type.slug = validate_slug(data["slug"]) if data["slug"] else ""
        for field in ("description", "menu_icon"):
            if field in data:
                setattr(post_type, field, data[field] or "")
        for field in ("hierarchical", "is_public", "show_in_dashboard", "has_archive"):
            if field in data:
                setattr(post_type, field, parse_bool(data[field]))
        if "labels" in data:
            if not isinstance(data["labels"], dict):
                raise ApiError.validation("labels must be an object", "labels")
            post_type.labels = data["labels"]
        if "supports" in data:
            if not isinstance(data["supports"], list):
                raise ApiError.validation("supports must be a list", "supports")
            post_type.supports = data["supports"]
        if "menu_position" in data:
            post_type.menu_position = parse_int(data["menu_position"], "menu_position")
        if "url_structure" in data:
            post_type.url_structure = validate_choice(data["url_structure"], "url_structure", URL_STRUCTURES)
        post_type.clean()

    def save_taxonomies(self, post_type, data):
        if "taxonomies" not in data:
            return
        names = data["taxonomies"] or []
        taxonomies = list(Taxonomy.objects.filter(site=self.site, name__in=names))
        missing = set(names) - {taxonomy.name for taxonomy in taxonomies}
        if missing:
            raise ApiError.validation(f"Unknown taxonomies: {', '.join(sorted(missing))}", "taxonomies")
        post_type.taxonomies.set(taxonomies)


class PostTypeCollectionView(PostTypeWriteMixin, ApiView):
    """List and create post types."""

    def get(self, request):
        post_types = PostType.objects.filter(site=self.site).prefetch_related("taxonomies")
        if "is_public" in request.GET:
            post_types = post_types.filter(is_public=parse_bool(request.GET["is_public"]))
        return api_success([serialize_post_type(post_type) for post_type in post_types])

    def post(self, request):
        self.require_permission("manage_settings")
        data = self.get_data()
        require_fields(data, ["name"])
        name = validate_slug(data["name"], "name")
        if PostType.objects.filter(site=self.site, name=name).exists():
            raise ApiError.duplicate("name", name)

        post_type = PostType(site=self.site, name=name, slug=data.get("slug") or name)
        with transaction.atomic():
            self.apply_post_type_data(post_type, data)
            post_type.save()
            self.save_taxonomies(post_type, data)

        self.log("post_type_create", post_type)
        return api_success(serialize_post_type(post_type), status=201)


class PostTypeDetailView(PostTypeWriteMixin, ApiView):
    """Read, update or delete a post type."""

    def get(self, request, pk):
        post_type = self.get_site_object(PostType.objects.all(), pk, "Post type")
        return api_success(serialize_post_type(post_type))

    def put(self, request, pk):
        self.require_permission("manage_settings")
        post_type = self.get_site_object(PostType.objects.all(), pk, "Post type")
        data = self.get_data()
        with transaction.atomic():
            self.apply_post_type_data(post_type, data)
            post_type.save()
            self.save_taxonomies(post_type, data)
        self.log("post_type_update", post_type)
        return api_success(serialize_post_type(post_type))

    patch = put

    def delete(self, request, pk):
        self.require_permission("manage_settings")
        post_type = self.get_site_object(PostType.objects.all(), pk, "Post type")
        if post_type.name in BUILTIN_POST_TYPES:
            raise ApiError.forbidden(f"Cannot delete the built-in {post_type.name} post type")
        if post_type.posts.exists():
            raise ApiError.conflict("Delete or move the posts of this type first")
        name = post_type.name
        post_type.delete()
        self.log("post_type_delete", entity_type="post_type", entity_id=pk, entity_name=name)
        return api_success({"id": pk, "deleted": True})
