"""
Scheduled publishing.

Run periodically, e.g. from cron:

    python manage.py publish_scheduled
"""
import logging

from django.db import transaction
from django.utils import timezone

from .models import Post, Site

logger = logging.getLogger(__name__)


def publish_due_posts(now=None):
    """
    Publish every scheduled post whose time has come, across all sites.

    published_at is set to the scheduled time so date permalinks match
    what was announced.

    Returns:
        (number of posts published, number of sites checked)
    """
    now = now or timezone.now()
    processed = 0
    sites = list(Site.objects.filter(is_active=True))

    for site in sites:
        due = Post.objects.for_site(site).due_for_publication(now).order_by("scheduled_at")
        for post in due:
            with transaction.atomic():
                post.publish(when=post.scheduled_at)
            logger.info("Published scheduled post %s on site %s", post.pk, site.name)
            processed += 1

    return processed, len(sites)
