"""
RSS feed of a site's latest posts.
"""
from django.contrib.syndication.views import Feed
from django.http import Http404

from .middleware import get_request_site
from .models import Post


class LatestPostsFeed(Feed):
    """Latest published posts of the current site."""

    limit = 20

    def get_object(self, request, *args, **kwargs):
        site = get_request_site(request)
        if site is None:
            raise Http404("No site configured")
        return site

    def title(self, site):
        return site.get_setting("site_title") or site.display_name

    def description(self, site):
        return site.get_setting("site_description") or site.description

    def link(self, site):
        from .permalinks import build_path_url

        return build_path_url("")

    def items(self, site):
        return (
            Post.objects.for_site(site)
            .public()
            .filter(post_type__hierarchical=False)
            .select_related("post_type", "author")
            .order_by("-published_at")[:self.limit]
        )

    def item_title(self, item):
        return item.title

    def item_description(self, item):
        return item.preview

    def item_pubdate(self, item):
        return item.published_at

    def item_author_name(self, item):
        return item.author.get_full_name() or item.author.get_username() if item.author else None
