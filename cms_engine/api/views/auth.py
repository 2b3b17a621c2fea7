"""
Authentication endpoints: login, logout, me, refresh and switch-site.
"""
from django.contrib.auth import authenticate as django_authenticate
from django.contrib.auth import get_user_model

from ...conf import cms_settings
from ...models import Site
from ...permissions import can_access_site, get_available_sites, get_permissions, get_role_name
from ..auth import get_bearer_token
from ..base import ApiView
from ..response import ApiError, api_success
from ..serializers import serialize_site, serialize_user
from ..tokens import REFRESH, blacklist_token, generate_token_pair, verify_token
from ..validation import parse_int, require_fields


def default_site_for(user):
    """Pick the site a user lands on after login."""
    sites = get_available_sites(user)
    return sites.filter(name=cms_settings.DEFAULT_SITE).first() or sites.order_by("id").first()


class LoginView(ApiView):
    """Exchange a username (or email) and password for a token pair."""

    auth_required = False
    site_required = False

    def post(self, request):
        data = self.get_data()
        require_fields(data, ["username", "password"])

        user = django_authenticate(request, username=data["username"], password=data["password"])
        if user is None:
            User = get_user_model()
            candidate = User.objects.filter(email__iexact=data["username"]).first()
            if candidate is not None and candidate.is_active and candidate.check_password(data["password"]):
                user = candidate
        if user is None:
            self.log("login_failed", entity_type="user", entity_name=str(data["username"]))
            raise ApiError.unauthorized("Invalid username or password")

        site_id = parse_int(data.get("site_id"), "site_id")
        if site_id is not None:
            site = Site.objects.filter(pk=site_id).first()
            if site is None or not can_access_site(user, site):
                raise ApiError.forbidden("You do not have access to this site")
        else:
            site = default_site_for(user)

        role = get_role_name(user, site) if site else None
        tokens = generate_token_pair(user, site, role)
        self.log("login", entity=user, user=user, site=site, details="User logged in via API")
        return api_success(dict(
            tokens,
            user=serialize_user(user, site),
            site=serialize_site(site) if site else None,
        ))

    def log(self, action, entity=None, **kwargs):
        # Called before self.auth exists, so the user is passed explicitly
        from ...activity import log_activity

        return log_activity(action, entity=entity, request=self.request, **kwargs)


class LogoutView(ApiView):
    """Blacklist the caller's access token and an optional refresh token."""

    site_required = False

    def post(self, request):
        token = get_bearer_token(request)
        if token:
            blacklist_token(token)
        if request.content_type == "application/json":
            refresh_token = self.get_data().get("refresh_token")
        else:
            refresh_token = request.POST.get("refresh_token")
        if refresh_token:
            blacklist_token(refresh_token)
        self.log("logout", entity=self.user)
        return api_success({"message": "Logged out successfully"})


class MeView(ApiView):
    """Return the caller with their role, permissions and sites."""

    site_required = False

    def get(self, request):
        data = serialize_user(self.user, self.site)
        data["permissions"] = get_permissions(self.user, self.site) if self.site else {}
        data["site"] = serialize_site(self.site) if self.site else None
        data["sites"] = [serialize_site(site) for site in get_available_sites(self.user)]
        data["auth_method"] = self.auth.method
        return api_success(data)


class RefreshView(ApiView):
    """Rotate a refresh token into a new token pair."""

    auth_required = False
    site_required = False

    def post(self, request):
        data = self.get_data()
        require_fields(data, ["refresh_token"])
        claims = verify_token(data["refresh_token"], expected_type=REFRESH)
        if claims is None:
            raise ApiError.invalid_token("Invalid or expired refresh token")

        user = get_user_model().objects.filter(pk=claims.get("user_id"), is_active=True).first()
        if user is None:
            raise ApiError.invalid_token("User no longer exists")
        site = Site.objects.filter(pk=claims.get("site_id")).first() if claims.get("site_id") else None
        if site is not None and not can_access_site(user, site):
            site = default_site_for(user)

        # Refresh tokens are single use
        blacklist_token(data["refresh_token"])
        return api_success(generate_token_pair(user, site, get_role_name(user, site) if site else None))


class SwitchSiteView(ApiView):
    """Issue tokens bound to another site the caller can access."""

    site_required = False

    def post(self, request):
        data = self.get_data()
        site_id = parse_int(data.get("site_id"), "site_id", required=True)
        site = Site.objects.filter(pk=site_id).first()
        if site is None:
            raise ApiError.not_found("Site", site_id)
        if not can_access_site(self.user, site):
            raise ApiError.forbidden("You do not have access to this site")

        if self.auth.method == "session":
            request.session[cms_settings.SITE_SESSION_KEY] = site.pk
        return api_success(dict(
            generate_token_pair(self.user, site, get_role_name(self.user, site)),
            site=serialize_site(site),
        ))
