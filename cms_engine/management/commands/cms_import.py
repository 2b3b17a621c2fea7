"""
Import a JSON export into a site.

    python manage.py cms_import default export.json
    python manage.py cms_import default export.json --dry-run
"""
import json

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from ...exporting import import_site
from ...models import Site


class Command(BaseCommand):
    help = "Import a JSON export into a site."

    def add_arguments(self, parser):
        parser.add_argument("site", help="Site name")
        parser.add_argument("path", help="JSON file produced by cms_export")
        parser.add_argument("--dry-run", action="store_true", help="Report counts without saving")

    def handle(self, *args, **options):
        site = Site.objects.filter(name=options["site"]).first()
        if site is None:
            raise CommandError(f"Site '{options['site']}' does not exist")

        try:
            with open(options["path"], encoding="utf-8") as fh:
                payload = json.load(fh)
        except (OSError, ValueError) as exc:
            raise CommandError(f"Could not read {options['path']}: {exc}")

        try:
            with transaction.atomic():
                counts = import_site(site, payload)
                if options["dry_run"]:
                    transaction.set_rollback(True)
        except ValidationError as exc:
            raise CommandError(exc.messages[0])

        for section, count in counts.items():
            self.stdout.write(f"{section}: {count}")
        if options["dry_run"]:
            self.stdout.write(self.style.WARNING("Dry run, nothing was saved"))
        else:
            self.stdout.write(self.style.SUCCESS(f"Imported into {site.name}"))
