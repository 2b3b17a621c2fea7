"""
Audit logging helpers.
"""
import logging

from django.db import DatabaseError, transaction

from .models import ActivityLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Return the client IP, honouring X-Forwarded-For and X-Real-IP."""
    if request is None:
        return None
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.META.get("HTTP_X_REAL_IP") or request.META.get("REMOTE_ADDR") or None


def get_user_agent(request):
    if request is None:
        return ""
    return request.META.get("HTTP_USER_AGENT", "")


def log_activity(action, user=None, site=None, entity=None, entity_type="", entity_id="",
                 entity_name="", details="", before=None, after=None, request=None):
    """
    Record an audit log entry.

    entity, when given, fills entity_type, entity_id and entity_name.
    Failures are logged and never propagate to the caller.
    """
    if entity is not None:
        entity_type = entity_type or entity._meta.model_name
        entity_id = entity_id or str(entity.pk)
        entity_name = entity_name or str(entity)
    if user is not None and not user.is_authenticated:
        user = None

    try:
        with transaction.atomic():
            return ActivityLog.objects.create(
                action=action,
                user=user,
                site=site,
                entity_type=entity_type,
                entity_id=str(entity_id or ""),
                entity_name=(entity_name or "")[:255],
                details=details,
                changes_before=before,
                changes_after=after,
                ip_address=get_client_ip(request),
                user_agent=get_user_agent(request),
            )
    except DatabaseError:
        logger.exception("Could not record activity %s", action)
        return None
