"""
Taxonomy and term endpoints.
"""
from django.db import transaction
from django.db.models import Count, Q

from ...models import PostType, Taxonomy, Term
from ..base import ApiView
from ..response import ApiError, api_success
from ..serializers import serialize_taxonomy, serialize_term
from ..validation import parse_bool, parse_int, parse_sort, require_fields, validate_slug

BUILTIN_TAXONOMIES = ("category", "tag")
TERM_SORT_FIELDS = {"id": "id", "name": "name", "slug": "slug", "post_count": "num_posts"}


def annotate_post_counts(terms):
    return terms.annotate(num_posts=Count("posts", filter=Q(posts__status="published"), distinct=True))


class TaxonomyWriteMixin:

    def apply_taxonomy_data(self, taxonomy, data):
        if data.get("slug"):
            slug = validate_slug(data["slug"])
            if Taxonomy.objects.filter(site=self.site, slug=slug).exclude(pk=taxonomy.pk).exists():
                raise ApiError.duplicate("slug", slug)
            taxonomy.slug = slug
        if "description" in data:
            taxonomy.description = data["description"] or ""
        for field in ("hierarchical", "is_public", "show_in_dashboard", "show_in_menu"):
            if field in data:
                setattr(taxonomy, field, parse_bool(data[field]))
        if "labels" in data:
            if not isinstance(data["labels"], dict):
                raise ApiError.validation("labels must be an object", "labels")
            taxonomy.labels = data["labels"]
        if "menu_position" in data:
            taxonomy.menu_position = parse_int(data["menu_position"], "menu_position") or 0

    def save_post_types(self, taxonomy, data):
        if "post_types" not in data:
            return
        names = data["post_types"] or []
        post_types = list(PostType.objects.filter(site=self.site, name__in=names))
        missing = set(names) - {post_type.name for post_type in post_types}
        if missing:
            raise ApiError.validation(f"Unknown post types: {', '.join(sorted(missing))}", "post_types")
        taxonomy.post_types.set(post_types)


class TaxonomyCollectionView(TaxonomyWriteMixin, ApiView):
    """List and create taxonomies."""

    def get(self, request):
        taxonomies = Taxonomy.objects.filter(site=self.site).prefetch_related("post_types")
        post_type = request.GET.get("post_type")
        if post_type:
            taxonomies = taxonomies.filter(post_types__name=post_type)
        return api_success([serialize_taxonomy(taxonomy) for taxonomy in taxonomies])

    def post(self, request):
        self.require_permission("manage_taxonomies")
        data = self.get_data()
        require_fields(data, ["name"])
        name = validate_slug(data["name"], "name")
        if Taxonomy.objects.filter(site=self.site, name=name).exists():
            raise ApiError.duplicate("name", name)

        taxonomy = Taxonomy(site=self.site, name=name)
        with transaction.atomic():
            self.apply_taxonomy_data(taxonomy, data)
            taxonomy.save()
            self.save_post_types(taxonomy, data)

        self.log("taxonomy_create", taxonomy)
        return api_success(serialize_taxonomy(taxonomy), status=201)


class TaxonomyDetailView(TaxonomyWriteMixin, ApiView):
    """Read, update or delete a taxonomy."""

    def get(self, request, pk):
        taxonomy = self.get_site_object(Taxonomy.objects.all(), pk, "Taxonomy")
        return api_success(serialize_taxonomy(taxonomy))

    def put(self, request, pk):
        self.require_permission("manage_taxonomies")
        taxonomy = self.get_site_object(Taxonomy.objects.all(), pk, "Taxonomy")
        data = self.get_data()
        with transaction.atomic():
            self.apply_taxonomy_data(taxonomy, data)
            taxonomy.save()
            self.save_post_types(taxonomy, data)
        self.log("taxonomy_update", taxonomy)
        return api_success(serialize_taxonomy(taxonomy))

    patch = put

    def delete(self, request, pk):
        self.require_permission("manage_taxonomies")
        taxonomy = self.get_site_object(Taxonomy.objects.all(), pk, "Taxonomy")
        if taxonomy.name in BUILTIN_TAXONOMIES:
            raise ApiError.bad_request("Cannot delete default taxonomies")
        name = taxonomy.name
        taxonomy.delete()
        self.log("taxonomy_delete", entity_type="taxonomy", entity_id=pk, entity_name=name)
        return api_success({"id": pk, "deleted": True})


class TermWriteMixin:

    def apply_term_data(self, term, data):
        if "name" in data:
            term.name = str(data["name"]).strip()
        if data.get("slug"):
            slug = validate_slug(data["slug"])
            if Term.objects.filter(taxonomy=term.taxonomy, slug=slug).exclude(pk=term.pk).exists():
                raise ApiError.duplicate("slug", slug)
            term.slug = slug
        if "description" in data:
            term.description = data["description"] or ""
        if "meta" in data:
            if not isinstance(data["meta"], dict):
                raise ApiError.validation("meta must be an object", "meta")
            term.meta = data["meta"]
        if "parent_id" in data:
            parent_id = parse_int(data["parent_id"], "parent_id")
            if parent_id is not None and not Term.objects.filter(site=self.site, pk=parent_id).exists():
                raise ApiError.validation("Parent term not found", "parent_id")
            term.parent_id = parent_id
        term.clean()


class TermCollectionView(TermWriteMixin, ApiView):
    """List terms (optionally of one taxonomy) and create terms."""

    def get(self, request):
        terms = annotate_post_counts(Term.objects.filter(site=self.site).select_related("taxonomy"))
        taxonomy = request.GET.get("taxonomy")
        if taxonomy:
            terms = terms.filter(taxonomy__name=taxonomy)
        if "parent_id" in request.GET:
            parent_id = parse_int(request.GET["parent_id"], "parent_id")
            terms = terms.filter(parent_id=parent_id) if parent_id else terms.filter(parent__isnull=True)
        search = request.GET.get("search", "").strip()
        if search:
            terms = terms.filter(name__icontains=search)
        if parse_bool(request.GET.get("hide_empty", False)):
            terms = terms.filter(num_posts__gt=0)
        terms = terms.order_by(parse_sort(request, TERM_SORT_FIELDS, "name"), "id")
        return self.paginate(terms, serialize_term)

    def post(self, request):
        self.require_permission("manage_taxonomies")
        data = self.get_data()
        require_fields(data, ["name", "taxonomy"])
        taxonomy = Taxonomy.objects.filter(site=self.site, name=data["taxonomy"]).first()
        if taxonomy is None:
            raise ApiError.validation(f"Unknown taxonomy: {data['taxonomy']}", "taxonomy")

        term = Term(site=self.site, taxonomy=taxonomy)
        self.apply_term_data(term, data)
        term.save()
        self.log("term_create", term)
        return api_success(serialize_term(term), status=201)


class TermDetailView(TermWriteMixin, ApiView):
    """Read, update or delete a term."""

    def get_term(self, pk):
        return self.get_site_object(annotate_post_counts(Term.objects.select_related("taxonomy")), pk, "Term")

    def get(self, request, pk):
        return api_success(serialize_term(self.get_term(pk)))

    def put(self, request, pk):
        self.require_permission("manage_taxonomies")
        term = self.get_term(pk)
        self.apply_term_data(term, self.get_data())
        term.save()
        self.log("term_update", term)
        return api_success(serialize_term(term))

    patch = put

    def delete(self, request, pk):
        self.require_permission("manage_taxonomies")
        term = self.get_term(pk)
        if term.children.exists():
            raise ApiError.bad_request("Cannot delete term with children. Delete or reassign children first.")
        name = term.name
        term.delete()
        self.log("term_delete", entity_type="term", entity_id=pk, entity_name=name)
        return api_success({"id": pk, "deleted": True})
