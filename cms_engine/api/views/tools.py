"""
Activity log, export and import endpoints.
"""
import json
from io import StringIO

from django.http import HttpResponse
from django.utils import timezone

from ...exporting import EXPORT_SECTIONS, export_posts_csv, export_site, generate_wxr, import_site
from ...models import ActivityLog
from ..base import ApiView
from ..response import ApiError, api_success
from ..serializers import serialize_activity
from ..validation import parse_bool, parse_datetime_value, parse_int, validate_choice

EXPORT_FORMATS = ["json", "wxr", "csv"]


class ActivityLogView(ApiView):
    """
    Audit log of the current site, newest first.

    Super admins may pass ?all_sites=true.
    """

    def get(self, request):
        self.require_permission("manage_settings")
        entries = ActivityLog.objects.all()
        if not (self.user.is_superuser and parse_bool(request.GET.get("all_sites", False))):
            entries = entries.filter(site=self.site)

        action = request.GET.get("action")
        if action:
            entries = entries.filter(action=action)
        user_id = parse_int(request.GET.get("user_id"), "user_id")
        if user_id is not None:
            entries = entries.filter(user_id=user_id)
        entity_type = request.GET.get("entity_type")
        if entity_type:
            entries = entries.filter(entity_type=entity_type)
        entity_id = request.GET.get("entity_id")
        if entity_id:
            entries = entries.filter(entity_id=entity_id)
        date_from = parse_datetime_value(request.GET.get("date_from"), "date_from")
        if date_from:
            entries = entries.filter(created_at__gte=date_from)
        date_to = parse_datetime_value(request.GET.get("date_to"), "date_to")
        if date_to:
            entries = entries.filter(created_at__lte=date_to)

        return self.paginate(entries.order_by("-created_at", "-id"), serialize_activity)


class ExportView(ApiView):
    """
    Export the current site.

    ?format=json (default) returns the payload in the envelope; wxr and csv
    are returned as file downloads. ?sections= limits the json export.
    """

    def get(self, request):
        self.require_permission("manage_settings")
        export_format = validate_choice(request.GET.get("format", "json"), "format", EXPORT_FORMATS)
        stamp = timezone.now().strftime("%Y%m%d")

        if export_format == "wxr":
            body = generate_wxr(self.site, request.build_absolute_uri("/"))
            response = HttpResponse(body, content_type="application/rss+xml; charset=utf-8")
            response["Content-Disposition"] = f'attachment; filename="{self.site.name}-{stamp}.xml"'
        elif export_format == "csv":
            stream = StringIO()
            export_posts_csv(self.site, stream)
            response = HttpResponse(stream.getvalue(), content_type="text/csv; charset=utf-8")
            response["Content-Disposition"] = f'attachment; filename="{self.site.name}-posts-{stamp}.csv"'
        else:
            sections = [part.strip() for part in request.GET.get("sections", "").split(",") if part.strip()]
            unknown = set(sections) - set(EXPORT_SECTIONS)
            if unknown:
                raise ApiError.validation(
                    f"Unknown sections: {', '.join(sorted(unknown))}", "sections",
                )
            response = api_success(export_site(self.site, sections or None, self.user))

        self.log("export", entity_type="site", entity_id=self.site.pk, details=f"Format: {export_format}")
        return response


class ImportView(ApiView):
    """
    Import a JSON export into the current site.

    Accepts the payload as the request body or as an uploaded "file".
    """

    def post(self, request):
        self.require_permission("manage_settings")
        upload = request.FILES.get("file")
        if upload is not None:
            try:
                payload = json.loads(upload.read().decode("utf-8"))
            except (UnicodeDecodeError, ValueError):
                raise ApiError.bad_request("Uploaded file must be a JSON export")
        else:
            payload = self.get_data()

        counts = import_site(self.site, payload, self.user)
        self.log("import", entity_type="site", entity_id=self.site.pk, after=counts)
        return api_success(counts)
