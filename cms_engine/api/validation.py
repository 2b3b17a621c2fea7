"""
Request parsing and validation helpers for API views.

Every helper raises ApiError on bad input.
"""
import json
from datetime import datetime

from django.core.exceptions import ValidationError
from django.core.validators import validate_email as django_validate_email
from django.core.validators import validate_slug as django_validate_slug
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from ..conf import cms_settings
from .response import ApiError


def parse_json_body(request):
    """Return the request body as a dict; an empty body is an empty dict."""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (TypeError, ValueError):
        raise ApiError.bad_request("Request body must be valid JSON")
    if not isinstance(data, dict):
        raise ApiError.bad_request("Request body must be a JSON object")
    return data


def _positive_int(value, field):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ApiError.validation(f"{field} must be a positive integer", field)
    if number < 1:
        raise ApiError.validation(f"{field} must be a positive integer", field)
    return number


def parse_pagination(request):
    """Return (page, per_page) from the query string."""
    page = _positive_int(request.GET.get("page", 1), "page")
    per_page = _positive_int(request.GET.get("per_page", cms_settings.API_DEFAULT_PER_PAGE), "per_page")
    if per_page > cms_settings.API_MAX_PER_PAGE:
        raise ApiError.validation(
            f"per_page cannot exceed {cms_settings.API_MAX_PER_PAGE}", "per_page"
        )
    return page, per_page


def parse_sort(request, allowed, default):
    """
    Return an order_by expression from ?sort=field or ?sort=-field.

    Args:
        allowed: mapping of public field name -> model field
        default: order_by expression used when no sort is given
    """
    sort = request.GET.get("sort")
    if not sort:
        return default
    descending = sort.startswith("-")
    field = sort.lstrip("-")
    if field not in allowed:
        raise ApiError.validation(
            f"Invalid sort field: {field}. Allowed fields: {', '.join(allowed)}",
            "sort",
        )
    return f"-{allowed[field]}" if descending else allowed[field]


def parse_include(request):
    value = request.GET.get("include", "")
    return {part.strip() for part in value.split(",") if part.strip()}


def require_fields(data, fields):
    for field in fields:
        if data.get(field) in (None, ""):
            raise ApiError.validation(f"{field} is required", field)


def validate_choice(value, field, choices):
    if value not in choices:
        raise ApiError.validation(
            f"Invalid {field}. Must be one of: {', '.join(choices)}", field
        )
    return value


def parse_datetime_value(value, field):
    """Parse an ISO date or datetime, returning an aware datetime or None."""
    if value in (None, ""):
        return None
    parsed = None
    if isinstance(value, str):
        try:
            parsed = parse_datetime(value)
            if parsed is None:
                date = parse_date(value)
                if date is not None:
                    parsed = datetime(date.year, date.month, date.day)
        except ValueError:
            parsed = None
    if parsed is None:
        raise ApiError.validation(f"{field} must be an ISO 8601 date", field)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def parse_int(value, field, required=False):
    if value in (None, ""):
        if required:
            raise ApiError.validation(f"{field} is required", field)
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ApiError.validation(f"{field} must be an integer", field)


def parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("1", "true", "yes", "on")


def validate_slug(value, field="slug"):
    try:
        django_validate_slug(value)
    except ValidationError:
        raise ApiError.validation(
            f"{field} may only contain letters, numbers, underscores or hyphens", field
        )
    return value


def validate_email(value, field="email"):
    try:
        django_validate_email(value)
    except ValidationError:
        raise ApiError.validation("Invalid email address", field)
    return value
