"""
Base class for API views.

ApiView authenticates the caller, applies rate limiting, resolves the
site being worked on and converts errors to the JSON error envelope.
"""
import logging

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import IntegrityError
from django.http import Http404, HttpResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from ..activity import log_activity
from ..conf import cms_settings
from ..permissions import can_access_site, has_permission
from .auth import authenticate
from .response import ApiError, api_success_paginated
from .throttling import check_rate_limit, get_client_identifier
from .validation import parse_json_body, parse_pagination

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-API-Key, X-Site-ID, X-CSRFToken",
    "Access-Control-Max-Age": "86400",
}


def validation_error_response(exc):
    """Render a Django ValidationError as a VALIDATION_ERROR envelope."""
    if hasattr(exc, "error_dict"):
        details = {field: [str(m) for m in messages] for field, messages in exc.message_dict.items()}
        field = next(iter(details))
        message = details[field][0]
        if field == "__all__":
            field = None
    else:
        details = None
        field = None
        message = exc.messages[0] if exc.messages else "Invalid data"
    return ApiError.validation(message, field, details).to_response()


@method_decorator(csrf_exempt, name="dispatch")
class ApiView(View):
    """
    Base API view.

    Attributes:
        auth_required: reject anonymous callers with 401
        site_required: require a site the caller can access
        throttle: apply rate limiting
    """

    auth_required = True
    site_required = True
    throttle = True

    http_method_names = ["get", "post", "put", "patch", "delete", "options"]

    def dispatch(self, request, *args, **kwargs):
        self.auth = None
        self.site = None
        self.rate_headers = {}
        try:
            if request.method == "OPTIONS":
                response = HttpResponse(status=204)
            else:
                response = self.handle(request, *args, **kwargs)
        except ApiError as exc:
            response = exc.to_response()
        except ValidationError as exc:
            response = validation_error_response(exc)
        except (ObjectDoesNotExist, Http404):
            response = ApiError.not_found().to_response()
        except IntegrityError as exc:
            logger.warning("Integrity error in %s: %s", request.path, exc)
            response = ApiError.conflict("A resource with these values already exists").to_response()
        except Exception:
            logger.exception("Unhandled API error in %s %s", request.method, request.path)
            response = ApiError.internal().to_response()
        return self.finalize_response(response)

    def handle(self, request, *args, **kwargs):
        method = request.method.lower()
        handler = getattr(self, method, None) if method in self.http_method_names else None
        if handler is None:
            raise ApiError.method_not_allowed(request.method)

        try:
            self.auth = authenticate(request)
        except ApiError:
            # Failed credentials count against the client IP
            if self.throttle:
                self.check_throttle(request)
            raise
        if self.throttle:
            self.check_throttle(request)
        if self.auth is None and self.auth_required:
            raise ApiError.unauthorized()
        self.site = self.auth.site if self.auth else None
        if self.site_required:
            self.check_site_access()
        return handler(request, *args, **kwargs)

    def check_throttle(self, request):
        identifier = get_client_identifier(request, self.auth)
        allowed, remaining, retry_after = check_rate_limit(identifier)
        self.rate_headers = {
            "X-RateLimit-Limit": str(cms_settings.API_RATE_LIMIT),
            "X-RateLimit-Remaining": str(remaining),
        }
        if not allowed:
            self.rate_headers["Retry-After"] = str(retry_after)
            raise ApiError.rate_limited(retry_after)

    def check_site_access(self):
        if self.site is None:
            raise ApiError.bad_request("No site selected. Send an X-Site-ID header.")
        if not can_access_site(self.user, self.site):
            raise ApiError.forbidden("You do not have access to this site")

    def finalize_response(self, response):
        response["Access-Control-Allow-Origin"] = cms_settings.CORS_ORIGIN
        for header, value in CORS_HEADERS.items():
            response[header] = value
        for header, value in self.rate_headers.items():
            response[header] = value
        return response

    @property
    def user(self):
        return self.auth.user if self.auth else None

    def get_data(self):
        """Return the parsed JSON body, cached for the request."""
        if not hasattr(self, "_data"):
            self._data = parse_json_body(self.request)
        return self._data

    def require_permission(self, permission, site=None):
        if not has_permission(self.user, site or self.site, permission):
            raise ApiError.insufficient_permissions()

    def require_superuser(self):
        if self.user is None or not self.user.is_superuser:
            raise ApiError.insufficient_permissions("Super admin access required")

    def get_site_object(self, queryset, pk, resource):
        """Fetch an object of the current site by pk or raise a 404 envelope."""
        obj = queryset.filter(site=self.site, pk=pk).first()
        if obj is None:
            raise ApiError.not_found(resource, pk)
        return obj

    def paginate(self, queryset, serializer, meta=None):
        page, per_page = parse_pagination(self.request)
        total = queryset.count()
        offset = (page - 1) * per_page
        items = [serializer(obj) for obj in queryset[offset:offset + per_page]]
        return api_success_paginated(self.request, items, total, page, per_page, meta=meta)

    def log(self, action, entity=None, **kwargs):
        return log_activity(
            action,
            user=self.user,
            site=kwargs.pop("site", self.site),
            entity=entity,
            request=self.request,
            **kwargs
        )
