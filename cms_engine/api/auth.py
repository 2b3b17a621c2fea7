"""
API authentication.

Three methods are accepted, in this order:

- Authorization: Bearer <access token>
- X-API-Key: <key>
- Django session cookie (CSRF is enforced for unsafe methods)
"""
import logging

from django.contrib.auth import get_user_model
from django.middleware.csrf import CsrfViewMiddleware

from ..conf import cms_settings
from ..middleware import get_request_site
from ..models import ApiKey, Site
from .response import ApiError
from .tokens import verify_token

logger = logging.getLogger(__name__)


class AuthContext:
    """Who is calling, on which site, and how they authenticated."""

    def __init__(self, user, site, method, claims=None, api_key=None):
        self.user = user
        self.site = site
        self.method = method
        self.claims = claims or {}
        self.api_key = api_key

    def __repr__(self):
        return f"<AuthContext {self.user} via {self.method}>"


class _CSRFCheck(CsrfViewMiddleware):
    def _reject(self, request, reason):
        return reason


def enforce_csrf(request):
    check = _CSRFCheck(lambda req: None)
    check.process_request(request)
    reason = check.process_view(request, None, (), {})
    if reason:
        raise ApiError.forbidden(f"CSRF Failed: {reason}")


def _site_from_header(request):
    value = request.META.get(cms_settings.SITE_HEADER)
    if not value:
        return None
    try:
        return Site.objects.filter(pk=int(value)).first()
    except (TypeError, ValueError):
        raise ApiError.validation("X-Site-ID must be an integer", "site_id")


def get_bearer_token(request):
    header = request.META.get("HTTP_AUTHORIZATION", "")
    if not header.lower().startswith("bearer "):
        return None
    return header[7:].strip() or None


def authenticate_token(request, token):
    claims = verify_token(token)
    if claims is None:
        raise ApiError.invalid_token()
    user = get_user_model().objects.filter(pk=claims.get("user_id"), is_active=True).first()
    if user is None:
        raise ApiError.invalid_token("User no longer exists")
    site = _site_from_header(request)
    if site is None and claims.get("site_id"):
        site = Site.objects.filter(pk=claims["site_id"]).first()
    return AuthContext(user, site, "jwt", claims=claims)


def authenticate_api_key(request, raw_key):
    api_key = ApiKey.objects.select_related("user", "site").filter(key=raw_key).first()
    if api_key is None or not api_key.is_valid() or not api_key.user.is_active:
        raise ApiError.invalid_token("Invalid or expired API key")
    api_key.record_use()
    return AuthContext(api_key.user, api_key.site, "api_key", api_key=api_key)


def authenticate_session(request):
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        return None
    if request.method not in ("GET", "HEAD", "OPTIONS", "TRACE"):
        enforce_csrf(request)
    site = _site_from_header(request) or get_request_site(request)
    return AuthContext(user, site, "session")


def authenticate(request):
    """
    Identify the caller.

    Returns:
        AuthContext, or None for anonymous requests

    Raises:
        ApiError: when credentials are present but invalid
    """
    token = get_bearer_token(request)
    if token:
        return authenticate_token(request, token)

    raw_key = request.META.get("HTTP_X_API_KEY")
    if raw_key:
        return authenticate_api_key(request, raw_key)

    return authenticate_session(request)
