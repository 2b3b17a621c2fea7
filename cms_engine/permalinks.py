"""
Permalink building and public path resolution.

Public URLs take one of these shapes:

    /{taxonomy}                        taxonomy archive
    /{taxonomy}/{term}                 term archive
    /{type slug}                       post type archive
    /{type slug}/[YYYY/[MM/[DD/]]]slug flat post types
    /{type slug}/parent/child          hierarchical post types

The type slug is omitted for post types with a blank slug (pages).
"""
import logging
import re

from django.db.models import Count, Q
from django.db.models.functions import Coalesce
from django.urls import reverse
from django.utils import timezone

from .conf import cms_settings
from .models import Post, PostType, Taxonomy
from .permissions import can_edit_post

logger = logging.getLogger(__name__)

YEAR_RE = re.compile(r"^\d{4}$")
MONTH_DAY_RE = re.compile(r"^\d{1,2}$")

DATE_PARTS = {
    "default": (),
    "year": ("year",),
    "year_month": ("year", "month"),
    "year_month_day": ("year", "month", "day"),
}


def build_slug_path(post):
    """
    Return the slug path of a post including its parents, root first.

    Bounded by HIERARCHY_MAX_DEPTH and safe against parent cycles.
    """
    slugs = [ancestor.slug for ancestor in post.get_ancestors()]
    slugs.append(post.slug)
    return "/".join(slugs)


def _date_for(post):
    value = post.published_at or post.created_at or timezone.now()
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value


def build_post_path(post):
    """Return the path of a post relative to the site root, without slashes."""
    post_type = post.post_type
    parts = [post_type.slug]

    if post_type.hierarchical:
        parts.append(build_slug_path(post))
    else:
        date = _date_for(post)
        values = {
            "year": f"{date.year:04d}",
            "month": f"{date.month:02d}",
            "day": f"{date.day:02d}",
        }
        parts.extend(values[name] for name in DATE_PARTS.get(post_type.url_structure, ()))
        parts.append(post.slug)

    return "/".join(part for part in parts if part)


def build_path_url(path):
    """Return the public URL for a path, or the home URL for an empty one."""
    path = path.strip("/")
    if not path:
        return reverse("cms_engine:home")
    return reverse("cms_engine:resolve_path", kwargs={"path": path})


def build_post_url(post):
    """Return the public URL of a post."""
    return build_path_url(build_post_path(post))


def split_path(segments, post_type_slugs):
    """
    Split path segments into post type slug, date parts and slug segments.

    A leading post type slug and each date part are consumed only when at
    least one further segment follows, so a post whose slug looks like a
    year is still reachable.

    Returns:
        (post_type_slug, year, month, day, slug_segments)
    """
    segments = list(segments)
    post_type_slug = ""
    year = month = day = None

    if len(segments) > 1 and segments[0] in post_type_slugs:
        post_type_slug = segments.pop(0)

    if len(segments) > 1 and YEAR_RE.match(segments[0]):
        year = segments.pop(0)
        if len(segments) > 1 and MONTH_DAY_RE.match(segments[0]):
            month = segments.pop(0)
            if len(segments) > 1 and MONTH_DAY_RE.match(segments[0]):
                day = segments.pop(0)

    return post_type_slug, year, month, day, segments


def get_post_by_full_path(site, slug_segments, post_type_slug="", year=None, month=None, day=None,
                          include_unpublished=False):
    """
    Find the published post addressed by a slug path.

    The final segment is the post slug. Hierarchical posts must match the
    full parent chain; flat posts must be addressed by a single segment.
    Date parts, when given, must match the publication date.

    With include_unpublished, drafts, pending and scheduled posts match too,
    never trashed ones. Their date parts come from created_at.
    """
    if not slug_segments:
        return None

    posts = Post.objects.for_site(site)
    posts = posts.not_trashed() if include_unpublished else posts.published()
    posts = posts.annotate(permalink_date=Coalesce("published_at", "created_at")).filter(
        slug=slug_segments[-1],
        post_type__is_public=True,
        post_type__slug=post_type_slug,
    )
    if year:
        posts = posts.filter(permalink_date__year=int(year))
    if month:
        posts = posts.filter(permalink_date__month=int(month))
    if day:
        posts = posts.filter(permalink_date__day=int(day))

    post = posts.select_related("post_type", "parent").first()
    if post is None:
        return None

    if post.post_type.hierarchical:
        if build_slug_path(post) != "/".join(slug_segments):
            return None
    elif len(slug_segments) != 1:
        return None

    return post


def organize_hierarchically(terms):
    """
    Arrange terms into a tree of {"term": term, "children": [...]} nodes.

    Terms whose parent is not in the list become roots. The input order is
    kept among siblings.
    """
    nodes = {term.pk: {"term": term, "children": []} for term in terms}
    roots = []
    for term in terms:
        node = nodes[term.pk]
        if term.parent_id and term.parent_id in nodes and term.parent_id != term.pk:
            nodes[term.parent_id]["children"].append(node)
        else:
            roots.append(node)
    return roots


class Resolution:
    """
    Result of resolving a public path.

    kind is one of "taxonomy", "term", "post_type_archive" or "post";
    obj is the matched object and context holds the data to render it.
    """

    TAXONOMY = "taxonomy"
    TERM = "term"
    POST_TYPE_ARCHIVE = "post_type_archive"
    POST = "post"

    def __init__(self, kind, obj, **context):
        self.kind = kind
        self.obj = obj
        self.context = context

    def __repr__(self):
        return f"<Resolution {self.kind}: {self.obj}>"


def get_taxonomy_terms(taxonomy):
    """Return the terms of a taxonomy annotated with num_posts (published)."""
    return taxonomy.terms.annotate(
        num_posts=Count(
            "posts",
            filter=Q(posts__status=Post.STATUS_PUBLISHED),
            distinct=True,
        )
    ).order_by("name")


def resolve_taxonomy(site, taxonomy_slug):
    taxonomy = Taxonomy.objects.filter(site=site, slug=taxonomy_slug, is_public=True).first()
    if taxonomy is None:
        return None
    terms = list(get_taxonomy_terms(taxonomy))
    tree = organize_hierarchically(terms) if taxonomy.hierarchical else None
    return Resolution(Resolution.TAXONOMY, taxonomy, taxonomy=taxonomy, terms=terms, term_tree=tree)


def resolve_post_type_archive(site, type_slug):
    post_type = PostType.objects.filter(
        site=site, slug=type_slug, has_archive=True, is_public=True
    ).first()
    if post_type is None:
        return None
    posts = (
        Post.objects.for_site(site)
        .public()
        .filter(post_type=post_type)
        .select_related("post_type", "author", "featured_image")
        .order_by("-published_at")
    )
    return Resolution(Resolution.POST_TYPE_ARCHIVE, post_type, post_type=post_type, posts=posts)


def resolve_term(site, taxonomy_slug, term_slug):
    taxonomy = Taxonomy.objects.filter(site=site, slug=taxonomy_slug, is_public=True).first()
    if taxonomy is None:
        return None
    term = taxonomy.terms.filter(slug=term_slug).select_related("parent").first()
    if term is None:
        return None
    posts = (
        Post.objects.for_site(site)
        .public()
        .filter(terms=term)
        .select_related("post_type", "author", "featured_image")
        .order_by("-published_at")
        .distinct()
    )
    return Resolution(
        Resolution.TERM,
        term,
        taxonomy=taxonomy,
        term=term,
        hierarchy=term.get_ancestors() + [term],
        posts=posts,
    )


def resolve_post(site, segments, user=None):
    type_slugs = set(
        PostType.objects.filter(site=site).exclude(slug="").values_list("slug", flat=True)
    )
    post_type_slug, year, month, day, slug_segments = split_path(segments, type_slugs)
    post = get_post_by_full_path(site, slug_segments, post_type_slug, year, month, day)
    if post is None and user is not None and user.is_authenticated:
        # Preview for users who can edit the post
        post = get_post_by_full_path(
            site, slug_segments, post_type_slug, year, month, day, include_unpublished=True
        )
        if post is not None and not can_edit_post(user, post):
            post = None
    if post is None:
        return None
    return Resolution(Resolution.POST, post, post=post)


def resolve_path(site, path, user=None):
    """
    Resolve a public path for a site.

    One segment tries a taxonomy archive, then a post type archive. Two
    segments try a term archive. Anything else, and every miss, falls back
    to a post lookup. Returns None when nothing matches.
    Unpublished posts resolve only for a user who can edit them.
    """
    segments = [segment for segment in path.strip("/").split("/") if segment]
    if not segments or len(segments) > cms_settings.HIERARCHY_MAX_DEPTH + 5:
        return None

    resolution = None
    if len(segments) == 1:
        resolution = resolve_taxonomy(site, segments[0]) or resolve_post_type_archive(site, segments[0])
    elif len(segments) == 2:
        resolution = resolve_term(site, segments[0], segments[1])

    if resolution is None:
        resolution = resolve_post(site, segments, user)

    if resolution is None:
        logger.debug("No match for path %r on site %s", path, site.pk)
    return resolution
