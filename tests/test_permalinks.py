"""
Tests for permalink building and public path resolution.
"""
from datetime import datetime, timezone as dt_timezone

import pytest

from cms_engine.models import Post, PostType, Term
from cms_engine.permalinks import (
    Resolution,
    build_post_path,
    build_slug_path,
    organize_hierarchically,
    resolve_path,
    split_path,
)


@pytest.fixture
def pages(site, page_type):
    """Create a published About > Team > Jane page chain."""
    about = Post.objects.create(site=site, post_type=page_type, title="About", status="published")
    team = Post.objects.create(site=site, post_type=page_type, title="Team", parent=about, status="published")
    jane = Post.objects.create(site=site, post_type=page_type, title="Jane", parent=team, status="published")
    return about, team, jane


@pytest.fixture
def dated_post(site, post_type):
    """Create a post published on 2024-03-05."""
    return Post.objects.create(
        site=site,
        post_type=post_type,
        title="Spring News",
        status="published",
        published_at=datetime(2024, 3, 5, 12, 0, tzinfo=dt_timezone.utc),
    )


class TestBuildPaths:
    """Tests for building permalinks."""

    def test_flat_post_path(self, published_post):
        """Test that posts live under their type slug."""
        assert build_post_path(published_post) == "blog/hello-world"
        assert published_post.get_absolute_url() == "/blog/hello-world"

    def test_page_path_includes_parents(self, pages):
        """Test that pages are addressed by their full parent chain."""
        about, team, jane = pages
        assert build_slug_path(jane) == "about/team/jane"
        assert build_post_path(jane) == "about/team/jane"
        assert about.get_absolute_url() == "/about"

    @pytest.mark.parametrize("structure,expected", [
        ("default", "blog/spring-news"),
        ("year", "blog/2024/spring-news"),
        ("year_month", "blog/2024/03/spring-news"),
        ("year_month_day", "blog/2024/03/05/spring-news"),
    ])
    def test_date_structures(self, dated_post, post_type, structure, expected):
        """Test date segments for each URL structure."""
        post_type.url_structure = structure
        post_type.save()
        dated_post.post_type = post_type
        assert build_post_path(dated_post) == expected


class TestSplitPath:
    """Tests for splitting path segments."""

    def test_type_and_date_parts(self):
        """Test that type slug and date parts are consumed."""
        assert split_path(["blog", "2024", "03", "05", "news"], {"blog"}) == (
            "blog", "2024", "03", "05", ["news"],
        )

    def test_year_like_slug(self):
        """Test that a final year-like segment stays the slug."""
        assert split_path(["blog", "2024"], {"blog"}) == ("blog", None, None, None, ["2024"])

    def test_lone_type_slug_is_slug(self):
        """Test that a single segment is never taken as the type slug."""
        assert split_path(["blog"], {"blog"}) == ("", None, None, None, ["blog"])

    def test_root_pages(self):
        """Test page paths without a type slug."""
        assert split_path(["about", "team"], {"blog"}) == ("", None, None, None, ["about", "team"])


class TestOrganizeHierarchically:
    """Tests for term trees."""

    def test_tree(self, category):
        """Test nesting terms and promoting orphans to roots."""
        news = Term.objects.create(taxonomy=category, name="News")
        local = Term.objects.create(taxonomy=category, name="Local", parent=news)
        sports = Term.objects.create(taxonomy=category, name="Sports")
        tree = organize_hierarchically([news, local, sports])
        assert [node["term"] for node in tree] == [news, sports]
        assert tree[0]["children"][0]["term"] == local

        orphan_tree = organize_hierarchically([local])
        assert orphan_tree[0]["term"] == local


class TestResolvePath:
    """Tests for resolving public paths."""

    def test_taxonomy_archive(self, site, category):
        """Test that a single taxonomy slug resolves to its archive."""
        Term.objects.create(taxonomy=category, name="News")
        resolution = resolve_path(site, "category")
        assert resolution.kind == Resolution.TAXONOMY
        assert resolution.obj == category
        assert len(resolution.context["terms"]) == 1
        assert resolution.context["term_tree"] is not None

    def test_flat_taxonomy_has_no_tree(self, site, tag):
        """Test that flat taxonomies are listed without a tree."""
        resolution = resolve_path(site, "tag")
        assert resolution.context["term_tree"] is None

    def test_term_archive(self, site, category, published_post, draft_post):
        """Test that taxonomy/term lists the term's published posts."""
        news = Term.objects.create(taxonomy=category, name="News")
        published_post.set_terms(category, [news])
        draft_post.set_terms(category, [news])
        resolution = resolve_path(site, "category/news")
        assert resolution.kind == Resolution.TERM
        assert list(resolution.context["posts"]) == [published_post]
        assert resolution.context["hierarchy"] == [news]

    def test_post_type_archive(self, site, published_post, draft_post):
        """Test that the type slug resolves to the archive of published posts."""
        resolution = resolve_path(site, "blog")
        assert resolution.kind == Resolution.POST_TYPE_ARCHIVE
        assert list(resolution.context["posts"]) == [published_post]

    def test_archive_disabled(self, site, post_type):
        """Test that types without an archive do not resolve."""
        post_type.has_archive = False
        post_type.save()
        assert resolve_path(site, "blog") is None

    def test_post(self, site, published_post):
        """Test resolving a flat post."""
        resolution = resolve_path(site, "blog/hello-world")
        assert resolution.kind == Resolution.POST
        assert resolution.obj == published_post

    def test_draft_not_resolved(self, site, draft_post):
        """Test that drafts have no public URL."""
        assert resolve_path(site, "blog/work-in-progress") is None

    def test_draft_preview(self, site, draft_post, author, subscriber):
        """Test that drafts resolve for users who can edit them."""
        assert resolve_path(site, "blog/work-in-progress", author).obj == draft_post
        assert resolve_path(site, "blog/work-in-progress", subscriber) is None

    def test_trashed_never_previewed(self, site, draft_post, author):
        """Test that trashed posts do not resolve even for their author."""
        draft_post.trash()
        assert resolve_path(site, "blog/work-in-progress", author) is None

    def test_nested_page(self, site, pages):
        """Test resolving pages by their full path."""
        about, team, jane = pages
        assert resolve_path(site, "about").obj == about
        assert resolve_path(site, "about/team/jane").obj == jane

    def test_wrong_parent_chain(self, site, pages):
        """Test that a page reached through the wrong parents does not resolve."""
        assert resolve_path(site, "team/jane") is None
        assert resolve_path(site, "jane") is None

    def test_dated_post(self, site, post_type, dated_post):
        """Test that date segments must match the publication date."""
        post_type.url_structure = "year_month"
        post_type.save()
        assert resolve_path(site, "blog/2024/03/spring-news").obj == dated_post
        assert resolve_path(site, "blog/2023/03/spring-news") is None

    def test_flat_post_needs_single_segment(self, site, published_post):
        """Test that extra segments before a flat post slug do not resolve."""
        assert resolve_path(site, "blog/extra/hello-world") is None

    def test_taxonomy_wins_over_post_type(self, site, post_type):
        """Test resolution order when a taxonomy and a type share a slug."""
        PostType.objects.filter(pk=post_type.pk).update(slug="category")
        assert resolve_path(site, "category").kind == Resolution.TAXONOMY

    def test_other_site_content(self, site, other_site):
        """Test that posts of another site are not resolved."""
        Post.objects.create(
            site=other_site,
            post_type=other_site.post_types.get(name="post"),
            title="Elsewhere",
            status="published",
        )
        assert resolve_path(site, "blog/elsewhere") is None
        assert resolve_path(other_site, "blog/elsewhere") is not None

    def test_empty_path(self, site):
        """Test that an empty path does not resolve."""
        assert resolve_path(site, "/") is None
