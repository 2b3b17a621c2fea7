"""
Export a site as JSON, WordPress WXR or a CSV of posts.

    python manage.py cms_export default --output default.json
    python manage.py cms_export default --format wxr --base-url https://example.com
"""
import json

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError
from django.core.serializers.json import DjangoJSONEncoder

from ...exporting import export_posts_csv, export_site, generate_wxr
from ...models import Site


class Command(BaseCommand):
    help = "Export a site's content."

    def add_arguments(self, parser):
        parser.add_argument("site", help="Site name")
        parser.add_argument("--format", choices=["json", "wxr", "csv"], default="json")
        parser.add_argument("--sections", default="", help="Comma-separated JSON sections, default all")
        parser.add_argument("--base-url", default="", help="Absolute site URL used in WXR links")
        parser.add_argument("--output", "-o", help="File to write, default stdout")

    def handle(self, *args, **options):
        site = Site.objects.filter(name=options["site"]).first()
        if site is None:
            raise CommandError(f"Site '{options['site']}' does not exist")

        if options["output"]:
            with open(options["output"], "w", encoding="utf-8", newline="") as stream:
                self.write_export(site, options, stream)
            self.stderr.write(self.style.SUCCESS(f"Exported {site.name} to {options['output']}"))
        else:
            self.write_export(site, options, self.stdout)

    def write_export(self, site, options, stream):
        if options["format"] == "wxr":
            stream.write(generate_wxr(site, options["base_url"]))
        elif options["format"] == "csv":
            export_posts_csv(site, stream)
        else:
            sections = [part.strip() for part in options["sections"].split(",") if part.strip()]
            try:
                payload = export_site(site, sections or None)
            except ValidationError as exc:
                raise CommandError(exc.messages[0])
            stream.write(json.dumps(payload, cls=DjangoJSONEncoder, indent=2))
