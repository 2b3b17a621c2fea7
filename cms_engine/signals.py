"""
Signal handlers for django-cms-engine.
"""
import logging

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .conf import cms_settings
from .models import Media, Site

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Site)
def seed_new_site(sender, instance, created, raw=False, **kwargs):
    """Seed default content for newly created sites."""
    if not created or raw or not cms_settings.AUTO_INITIALIZE_SITES:
        return
    from .bootstrap import initialize_site_defaults

    initialize_site_defaults(instance)


@receiver(post_delete, sender=Media)
def delete_media_files(sender, instance, **kwargs):
    """Remove stored files once a media item is deleted."""
    try:
        instance.delete_files()
    except OSError:
        logger.exception("Could not delete files for media %s", instance.pk)
