"""
Standard JSON envelopes for API responses.

Success:

    {"success": true, "data": ..., "meta": {"timestamp", "version"}, "links": {...}}

Error:

    {"success": false, "error": {"code", "message", "details"?, "field"?}, "meta": {...}}
"""
from urllib.parse import urlencode

from django.core.serializers.json import DjangoJSONEncoder
from django.http import JsonResponse
from django.utils import timezone

from . import API_VERSION


def _meta(extra=None):
    meta = {
        "timestamp": timezone.now().isoformat(),
        "version": API_VERSION,
    }
    if extra:
        meta.update(extra)
    return meta


def api_success(data, status=200, meta=None, links=None):
    payload = {"success": True, "data": data, "meta": _meta(meta)}
    if links:
        payload["links"] = links
    return JsonResponse(payload, status=status, encoder=DjangoJSONEncoder, safe=False)


def _page_link(request, page, per_page):
    params = request.GET.copy()
    params["page"] = page
    params["per_page"] = per_page
    return f"{request.path}?{urlencode(sorted(params.items()))}"


def api_success_paginated(request, data, total, page, per_page, status=200, meta=None):
    """Return a page of results with pagination meta and navigation links."""
    total_pages = (total + per_page - 1) // per_page if total else 0
    pagination = {
        "total": total,
        "count": len(data),
        "per_page": per_page,
        "current_page": page,
        "total_pages": total_pages,
    }
    links = {"self": _page_link(request, page, per_page)}
    if page > 1:
        links["prev"] = _page_link(request, page - 1, per_page)
        links["first"] = _page_link(request, 1, per_page)
    if page < total_pages:
        links["next"] = _page_link(request, page + 1, per_page)
        links["last"] = _page_link(request, total_pages, per_page)
    return api_success(data, status, dict(meta or {}, pagination=pagination), links)


def api_error(code, message, status=400, details=None, field=None):
    error = {"code": code, "message": message}
    if details:
        error["details"] = details
    if field:
        error["field"] = field
    return JsonResponse(
        {"success": False, "error": error, "meta": _meta()},
        status=status,
        encoder=DjangoJSONEncoder,
    )


class ApiError(Exception):
    """
    Error raised by API views and rendered as the error envelope.

    Use the classmethod factories for the common cases:

        raise ApiError.not_found("Post", post_id)
    """

    def __init__(self, code, message, status=400, details=None, field=None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.details = details
        self.field = field

    def to_response(self):
        return api_error(self.code, self.message, self.status, self.details, self.field)

    @classmethod
    def bad_request(cls, message="Bad request", details=None):
        return cls("BAD_REQUEST", message, 400, details)

    @classmethod
    def validation(cls, message, field=None, details=None):
        return cls("VALIDATION_ERROR", message, 400, details, field)

    @classmethod
    def invalid_query(cls, message="Invalid query parameters", details=None):
        return cls("INVALID_QUERY", message, 400, details)

    @classmethod
    def unauthorized(cls, message="Authentication required"):
        return cls("UNAUTHORIZED", message, 401)

    @classmethod
    def invalid_token(cls, message="Invalid or expired token"):
        return cls("INVALID_TOKEN", message, 401)

    @classmethod
    def forbidden(cls, message="Access denied"):
        return cls("FORBIDDEN", message, 403)

    @classmethod
    def insufficient_permissions(cls, message="Insufficient permissions"):
        return cls("INSUFFICIENT_PERMISSIONS", message, 403)

    @classmethod
    def not_found(cls, resource="Resource", resource_id=None):
        details = {"id": resource_id} if resource_id is not None else None
        return cls("RESOURCE_NOT_FOUND", f"{resource} not found", 404, details)

    @classmethod
    def method_not_allowed(cls, method):
        return cls("METHOD_NOT_ALLOWED", f"Method {method} not allowed", 405)

    @classmethod
    def conflict(cls, message="Resource already exists"):
        return cls("CONFLICT", message, 409)

    @classmethod
    def duplicate(cls, field, value):
        return cls("DUPLICATE_VALUE", f"{field} already exists", 409, {"field": field, "value": value}, field)

    @classmethod
    def unprocessable(cls, message="Cannot process request"):
        return cls("UNPROCESSABLE_ENTITY", message, 422)

    @classmethod
    def rate_limited(cls, retry_after=None):
        details = {"retry_after": retry_after} if retry_after else None
        return cls("RATE_LIMIT_EXCEEDED", "Too many requests", 429, details)

    @classmethod
    def internal(cls, message="An unexpected error occurred"):
        return cls("INTERNAL_ERROR", message, 500)
