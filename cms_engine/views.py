"""
Public views for django-cms-engine.

Every public URL other than the home page and the feed goes through
PathResolveView, which resolves the path for the current site and hands
off to the matching archive or detail view.
"""
from django.http import Http404, HttpResponseRedirect
from django.views import View
from django.views.generic import DetailView, ListView, TemplateView

from .conf import cms_settings
from .forms import PostPasswordForm
from .middleware import get_request_site
from .models import Post
from .permalinks import Resolution, resolve_path
from .permissions import can_edit_post

PASSWORD_SESSION_KEY = "cms_post_unlocked_{}"


class SiteMixin:
    """Resolve the current site and the site's posts-per-page setting."""

    def get_site(self):
        if not hasattr(self, "_site"):
            self._site = get_request_site(self.request)
        if self._site is None:
            raise Http404("No site configured")
        return self._site

    def get_paginate_by(self, queryset):
        value = self.get_site().get_setting("posts_per_page", cms_settings.POSTS_PER_PAGE)
        try:
            return max(int(value), 1)
        except (TypeError, ValueError):
            return cms_settings.POSTS_PER_PAGE


class ResolvedMixin(SiteMixin):
    """Views dispatched by PathResolveView receive a Resolution kwarg."""

    @property
    def resolution(self):
        return self.kwargs["resolution"]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        # The paginated list wins over the resolved queryset
        for key, value in self.resolution.context.items():
            context.setdefault(key, value)
        return context


class HomeView(SiteMixin, ListView):
    """Latest posts, or a static page when the site's homepage_type is 'page'."""

    template_name = "cms_engine/post_list.html"
    context_object_name = "posts"

    def get(self, request, *args, **kwargs):
        page = self.get_homepage()
        if page is not None:
            return PostDetailView.as_view()(request, resolution=Resolution(Resolution.POST, page, post=page))
        return super().get(request, *args, **kwargs)

    def get_homepage(self):
        site = self.get_site()
        if site.get_setting("homepage_type") != "page":
            return None
        page_id = site.get_setting("homepage_page_id")
        if not page_id:
            return None
        return Post.objects.for_site(site).published().filter(pk=page_id).first()

    def get_queryset(self):
        return (
            Post.objects.for_site(self.get_site())
            .public()
            .filter(post_type__hierarchical=False)
            .select_related("post_type", "author", "featured_image")
            .order_by("-published_at")
        )


class TaxonomyArchiveView(ResolvedMixin, TemplateView):
    """Terms of a taxonomy, as a tree for hierarchical taxonomies."""

    template_name = "cms_engine/taxonomy_archive.html"


class PostTypeArchiveView(ResolvedMixin, ListView):
    """Published posts of one post type."""

    template_name = "cms_engine/post_type_archive.html"
    context_object_name = "posts"

    def get_queryset(self):
        return self.resolution.context["posts"]


class TermArchiveView(ResolvedMixin, ListView):
    """Published posts with one term, newest first."""

    template_name = "cms_engine/term_archive.html"
    context_object_name = "posts"

    def get_queryset(self):
        return self.resolution.context["posts"]


class PostDetailView(SiteMixin, DetailView):
    """
    Display a single post.

    Password-protected posts show a password form until unlocked for the
    session. Users who can edit the post skip the gate.
    """

    template_name = "cms_engine/post_detail.html"
    password_template_name = "cms_engine/post_password.html"
    context_object_name = "post"

    def get_object(self, queryset=None):
        post = self.kwargs["resolution"].obj
        if not post.can_view(self.request.user):
            raise Http404("Post not found")
        return post

    def is_unlocked(self, post):
        if post.visibility != Post.VISIBILITY_PASSWORD:
            return True
        if self.request.user.is_authenticated and can_edit_post(self.request.user, post):
            return True
        return bool(self.request.session.get(PASSWORD_SESSION_KEY.format(post.pk)))

    def get(self, request, *args, **kwargs):
        self.object = self.get_object()
        if not self.is_unlocked(self.object):
            return self.render_password_form(PostPasswordForm(post=self.object))

        # Previews are not counted
        if self.object.is_published:
            self.object.increment_view_count()
        context = self.get_context_data(object=self.object)
        return self.render_to_response(context)

    def post(self, request, *args, **kwargs):
        self.object = self.get_object()
        form = PostPasswordForm(request.POST, post=self.object)
        if form.is_valid():
            request.session[PASSWORD_SESSION_KEY.format(self.object.pk)] = True
            return HttpResponseRedirect(request.path)
        return self.render_password_form(form)

    def render_password_form(self, form):
        return self.response_class(
            request=self.request,
            template=[self.password_template_name],
            context={"post": self.object, "form": form},
            using=self.template_engine,
        )

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        post = self.object
        context["ancestors"] = post.get_ancestors()
        context["terms"] = post.get_terms()
        context["meta"] = post.get_meta_dict()
        return context


class PathResolveView(View):
    """Resolve a public path and delegate to the matching view."""

    handlers = {
        Resolution.TAXONOMY: TaxonomyArchiveView,
        Resolution.TERM: TermArchiveView,
        Resolution.POST_TYPE_ARCHIVE: PostTypeArchiveView,
        Resolution.POST: PostDetailView,
    }

    def dispatch(self, request, path):
        site = get_request_site(request)
        if site is None:
            raise Http404("No site configured")
        resolution = resolve_path(site, path, request.user)
        if resolution is None:
            raise Http404("Page not found")
        view = self.handlers[resolution.kind].as_view()
        return view(request, resolution=resolution)
