"""
Create the built-in roles and the default site, and seed every site.

    python manage.py cms_init
    python manage.py cms_init --display-name "My Blog" --domain blog.example.com
"""
from django.core.management.base import BaseCommand

from ...bootstrap import create_default_roles, initialize_site_defaults
from ...conf import cms_settings
from ...models import Site


class Command(BaseCommand):
    help = "Create default roles and the default site, then seed each site with default content."

    def add_arguments(self, parser):
        parser.add_argument("--site-name", default=cms_settings.DEFAULT_SITE, help="Name of the default site")
        parser.add_argument("--display-name", default="Default Site", help="Display name for a new default site")
        parser.add_argument("--domain", default="", help="Domain served by a new default site")

    def handle(self, *args, **options):
        created = create_default_roles()
        self.stdout.write(f"Roles: {created} created")

        site, site_created = Site.objects.get_or_create(
            name=options["site_name"],
            defaults={"display_name": options["display_name"], "domain": options["domain"]},
        )
        if site_created:
            self.stdout.write(f"Created site '{site.name}'")

        sites = Site.objects.all()
        for each in sites:
            initialize_site_defaults(each)
        self.stdout.write(self.style.SUCCESS(f"Initialized {sites.count()} site(s)"))
