"""
Site and site membership endpoints.
"""
from django.contrib.auth import get_user_model

from ...conf import cms_settings
from ...models import Role, Site, SiteUser
from ...permissions import can_access_site, get_available_sites, has_permission
from ..base import ApiView
from ..response import ApiError, api_success
from ..serializers import serialize_site, serialize_site_user
from ..validation import parse_bool, parse_int, require_fields, validate_slug


class SiteMixin:

    def get_site_for_user(self, pk):
        site = Site.objects.filter(pk=pk).first()
        if site is None or not can_access_site(self.user, site):
            raise ApiError.not_found("Site", pk)
        return site

    def require_site_admin(self, site):
        if not (self.user.is_superuser or has_permission(self.user, site, "manage_settings")):
            raise ApiError.insufficient_permissions()

    def apply_site_data(self, site, data):
        if "display_name" in data:
            if not data["display_name"]:
                raise ApiError.validation("display_name cannot be empty", "display_name")
            site.display_name = data["display_name"]
        if "description" in data:
            site.description = data["description"] or ""
        if "domain" in data:
            domain = (data["domain"] or "").strip().lower()
            if domain and Site.objects.filter(domain__iexact=domain).exclude(pk=site.pk).exists():
                raise ApiError.duplicate("domain", domain)
            site.domain = domain
        if "is_active" in data:
            site.is_active = parse_bool(data["is_active"])


class SiteCollectionView(SiteMixin, ApiView):
    """List the caller's sites; super admins create new ones."""

    site_required = False

    def get(self, request):
        sites = get_available_sites(self.user)
        return api_success([serialize_site(site) for site in sites])

    def post(self, request):
        self.require_superuser()
        data = self.get_data()
        require_fields(data, ["name", "display_name"])
        name = validate_slug(data["name"], "name")
        if Site.objects.filter(name=name).exists():
            raise ApiError.duplicate("name", name)
        site = Site(name=name)
        self.apply_site_data(site, data)
        # post_save seeds roles, post types, taxonomies and settings
        site.save()
        self.log("site_create", site, site=site)
        return api_success(serialize_site(site), status=201)


class SiteDetailView(SiteMixin, ApiView):
    """Read, update or delete a site."""

    site_required = False

    def get(self, request, pk):
        return api_success(serialize_site(self.get_site_for_user(pk)))

    def put(self, request, pk):
        site = self.get_site_for_user(pk)
        self.require_site_admin(site)
        if "is_active" in self.get_data():
            self.require_superuser()
        self.apply_site_data(site, self.get_data())
        site.save()
        self.log("site_update", site, site=site)
        return api_success(serialize_site(site))

    patch = put

    def delete(self, request, pk):
        self.require_superuser()
        site = self.get_site_for_user(pk)
        if site.name == cms_settings.DEFAULT_SITE:
            raise ApiError.forbidden("Cannot delete the default site")
        name = site.name
        site.delete()
        self.log("site_delete", entity_type="site", entity_id=pk, entity_name=name, site=None)
        return api_success({"id": pk, "deleted": True})


class SiteUserCollectionView(SiteMixin, ApiView):
    """List members of a site and assign users to it."""

    site_required = False

    def get(self, request, pk):
        site = self.get_site_for_user(pk)
        self.require_permission("manage_users", site)
        memberships = SiteUser.objects.filter(site=site).select_related("user", "role")
        return api_success([serialize_site_user(membership) for membership in memberships])

    def post(self, request, pk):
        site = self.get_site_for_user(pk)
        self.require_permission("manage_users", site)
        data = self.get_data()
        require_fields(data, ["user_id", "role"])
        user = get_user_model().objects.filter(pk=parse_int(data["user_id"], "user_id")).first()
        if user is None:
            raise ApiError.validation("User not found", "user_id")
        role = Role.objects.filter(name=data["role"]).first()
        if role is None:
            raise ApiError.validation(f"Unknown role: {data['role']}", "role")
        if role.name == "super_admin":
            self.require_superuser()

        membership, created = SiteUser.objects.update_or_create(site=site, user=user, defaults={"role": role})
        self.log("user_update", user, site=site, details=f"Role on {site.name}: {role.name}")
        return api_success(serialize_site_user(membership), status=201 if created else 200)


class SiteUserDetailView(SiteMixin, ApiView):
    """Change a member's role or remove them from a site."""

    site_required = False

    def get_membership(self, pk, user_id):
        site = self.get_site_for_user(pk)
        self.require_permission("manage_users", site)
        membership = SiteUser.objects.filter(site=site, user_id=user_id).select_related("user", "role").first()
        if membership is None:
            raise ApiError.not_found("Site user", user_id)
        return site, membership

    def put(self, request, pk, user_id):
        site, membership = self.get_membership(pk, user_id)
        data = self.get_data()
        require_fields(data, ["role"])
        role = Role.objects.filter(name=data["role"]).first()
        if role is None:
            raise ApiError.validation(f"Unknown role: {data['role']}", "role")
        if role.name == "super_admin":
            self.require_superuser()
        membership.role = role
        membership.save(update_fields=["role"])
        self.log("user_update", membership.user, site=site, details=f"Role on {site.name}: {role.name}")
        return api_success(serialize_site_user(membership))

    patch = put

    def delete(self, request, pk, user_id):
        site, membership = self.get_membership(pk, user_id)
        if membership.user_id == self.user.pk:
            raise ApiError.bad_request("You cannot remove yourself from a site")
        user = membership.user
        membership.delete()
        self.log("user_update", user, site=site, details=f"Removed from {site.name}")
        return api_success({"user_id": user_id, "deleted": True})
