"""
Publish scheduled posts whose time has come. Run from cron, e.g. every minute.
"""
from django.core.management.base import BaseCommand

from ...publishing import publish_due_posts


class Command(BaseCommand):
    help = "Publish scheduled posts that are due, across all active sites."

    def handle(self, *args, **options):
        processed, sites_checked = publish_due_posts()
        self.stdout.write(self.style.SUCCESS(
            f"Published {processed} post(s) across {sites_checked} site(s)"
        ))
