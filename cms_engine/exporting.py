"""
Site export and import.

Exports use natural keys (names, slugs, usernames, content hashes) rather
than database ids so a payload exported from one site imports cleanly
into another.
"""
import csv
import logging
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.utils.feedgenerator import rfc2822_date
from django.utils.xmlutils import SimplerXMLGenerator

from . import __version__
from .models import (
    Media,
    Menu,
    MenuItem,
    MenuLocation,
    Post,
    PostTerm,
    PostType,
    Role,
    Setting,
    SiteUser,
    Taxonomy,
    Term,
)

logger = logging.getLogger(__name__)

EXPORT_SECTIONS = ["post_types", "taxonomies", "posts", "media", "menus", "settings", "users"]

POST_TYPE_FIELDS = [
    "slug", "labels", "description", "hierarchical", "is_public", "supports",
    "menu_icon", "menu_position", "show_in_dashboard", "has_archive", "url_structure",
]
TAXONOMY_FIELDS = [
    "slug", "labels", "description", "hierarchical", "is_public",
    "show_in_dashboard", "show_in_menu", "menu_position",
]
POST_FIELDS = [
    "title", "content", "excerpt", "status", "visibility", "password",
    "comment_status", "menu_order",
]
POST_DATE_FIELDS = ["scheduled_at", "published_at", "created_at"]
MENU_ITEM_FIELDS = [
    "item_type", "custom_url", "custom_label", "menu_order", "target",
    "title_attr", "css_classes", "xfn", "description",
]
SETTING_FIELDS = ["value", "value_type", "group", "label", "description", "is_public"]

CSV_COLUMNS = [
    "id", "title", "slug", "content", "excerpt", "status", "post_type", "author_id",
    "featured_image_id", "parent_id", "menu_order", "published_at", "created_at", "updated_at",
]

WXR_NAMESPACES = {
    "version": "2.0",
    "xmlns:excerpt": "http://wordpress.org/export/1.2/excerpt/",
    "xmlns:content": "http://purl.org/rss/1.0/modules/content/",
    "xmlns:wfw": "http://wellformedweb.org/CommentAPI/",
    "xmlns:dc": "http://purl.org/dc/elements/1.1/",
    "xmlns:wp": "http://wordpress.org/export/1.2/",
}


def _isoformat(value):
    return value.isoformat() if value else None


def _menu_target_key(item, targets):
    target = targets.get((item.item_type, item.object_id))
    if target is None:
        return None
    if item.item_type == MenuItem.TYPE_POST:
        return target.slug
    if item.item_type == MenuItem.TYPE_TERM:
        return f"{target.taxonomy.name}/{target.slug}"
    return target.name


def export_post_types(site):
    return [
        dict({"name": pt.name}, **{field: getattr(pt, field) for field in POST_TYPE_FIELDS})
        for pt in site.post_types.all()
    ]


def export_taxonomies(site):
    taxonomies = []
    for taxonomy in site.taxonomies.prefetch_related("post_types", "terms__parent"):
        entry = {"name": taxonomy.name}
        entry.update({field: getattr(taxonomy, field) for field in TAXONOMY_FIELDS})
        entry["post_types"] = [pt.name for pt in taxonomy.post_types.all()]
        entry["terms"] = [
            {
                "name": term.name,
                "slug": term.slug,
                "description": term.description,
                "parent": term.parent.slug if term.parent else None,
                "meta": term.meta,
            }
            for term in taxonomy.terms.all()
        ]
        taxonomies.append(entry)
    return taxonomies


def export_posts(site):
    posts = []
    queryset = (
        Post.objects.for_site(site)
        .select_related("post_type", "author", "parent", "featured_image")
        .prefetch_related("meta")
        .order_by("created_at", "id")
    )
    links = PostTerm.objects.filter(post__site=site).select_related("term__taxonomy")
    terms_by_post = {}
    for link in links.order_by("order", "id"):
        taxonomies = terms_by_post.setdefault(link.post_id, {})
        taxonomies.setdefault(link.term.taxonomy.name, []).append(link.term.slug)

    for post in queryset:
        entry = {"post_type": post.post_type.name, "slug": post.slug}
        entry.update({field: getattr(post, field) for field in POST_FIELDS})
        entry.update({field: _isoformat(getattr(post, field)) for field in POST_DATE_FIELDS})
        entry["author"] = post.author.get_username() if post.author else None
        entry["parent"] = post.parent.slug if post.parent else None
        entry["featured_image"] = post.featured_image.content_hash if post.featured_image else None
        entry["meta"] = {item.key: item.value for item in post.meta.all()}
        entry["terms"] = terms_by_post.get(post.pk, {})
        posts.append(entry)
    return posts


def export_media(site):
    return [
        {
            "original_filename": item.original_filename,
            "content_hash": item.content_hash,
            "media_type": item.media_type,
            "mime_type": item.mime_type,
            "file_size": item.file_size,
            "width": item.width,
            "height": item.height,
            "alt_text": item.alt_text,
            "caption": item.caption,
            "url": item.file_url,
            "folder": item.folder.name if item.folder else None,
            "status": item.status,
        }
        for item in site.media.select_related("folder")
    ]


def export_menus(site):
    from .navigation import _load_targets

    locations = [
        {"name": loc.name, "display_name": loc.display_name, "description": loc.description}
        for loc in site.menu_locations.all()
    ]
    menus = []
    for menu in site.menus.select_related("location"):
        items = list(menu.items.order_by("menu_order", "id"))
        targets = _load_targets(items)
        menus.append({
            "name": menu.name,
            "display_name": menu.display_name,
            "description": menu.description,
            "location": menu.location.name if menu.location else None,
            "items": [
                dict(
                    {
                        "ref": item.pk,
                        "parent": item.parent_id,
                        "object": _menu_target_key(item, targets),
                    },
                    **{field: getattr(item, field) for field in MENU_ITEM_FIELDS}
                )
                for item in items
            ],
        })
    return {"locations": locations, "menus": menus}


def export_settings(site):
    return [
        dict({"key": setting.key}, **{field: getattr(setting, field) for field in SETTING_FIELDS})
        for setting in site.settings.all()
    ]


def export_users(site):
    return [
        {
            "username": membership.user.get_username(),
            "email": membership.user.email,
            "first_name": membership.user.first_name,
            "last_name": membership.user.last_name,
            "role": membership.role.name,
        }
        for membership in site.memberships.select_related("user", "role")
    ]


EXPORTERS = {
    "post_types": export_post_types,
    "taxonomies": export_taxonomies,
    "posts": export_posts,
    "media": export_media,
    "menus": export_menus,
    "settings": export_settings,
    "users": export_users,
}


def export_site(site, sections=None, user=None):
    """
    Export a site to a JSON-serialisable dict.

    Args:
        site: Site to export
        sections: iterable of section names, defaults to all of them
        user: user performing the export

    Raises:
        ValidationError: for unknown section names
    """
    sections = list(sections or EXPORT_SECTIONS)
    unknown = set(sections) - set(EXPORTERS)
    if unknown:
        raise ValidationError(f"Unknown export sections: {', '.join(sorted(unknown))}")

    return {
        "version": __version__,
        "exported_at": timezone.now().isoformat(),
        "exported_by": user.get_username() if user is not None and user.is_authenticated else None,
        "site": {
            "name": site.name,
            "display_name": site.display_name,
            "description": site.description,
            "domain": site.domain,
        },
        "data": {section: EXPORTERS[section](site) for section in sections},
    }


def generate_wxr(site, base_url=""):
    """Return a WordPress eXtended RSS (WXR 1.2) document for a site."""
    base_url = base_url.rstrip("/")
    out = StringIO()
    xml = SimplerXMLGenerator(out, "utf-8")
    xml.startDocument()
    xml.startElement("rss", WXR_NAMESPACES)
    xml.startElement("channel", {})
    xml.addQuickElement("title", site.display_name)
    xml.addQuickElement("link", base_url or "/")
    xml.addQuickElement("description", site.description)
    xml.addQuickElement("pubDate", rfc2822_date(timezone.now()))
    xml.addQuickElement("language", "en")
    xml.addQuickElement("wp:wxr_version", "1.2")
    xml.addQuickElement("wp:base_site_url", base_url)
    xml.addQuickElement("wp:base_blog_url", base_url)

    for membership in site.memberships.select_related("user"):
        author = membership.user
        xml.startElement("wp:author", {})
        xml.addQuickElement("wp:author_id", str(author.pk))
        xml.addQuickElement("wp:author_login", author.get_username())
        xml.addQuickElement("wp:author_email", author.email)
        xml.addQuickElement("wp:author_display_name", author.get_full_name() or author.get_username())
        xml.addQuickElement("wp:author_first_name", author.first_name)
        xml.addQuickElement("wp:author_last_name", author.last_name)
        xml.endElement("wp:author")

    for term in Term.objects.filter(site=site).select_related("taxonomy", "parent"):
        xml.startElement("wp:term", {})
        xml.addQuickElement("wp:term_id", str(term.pk))
        xml.addQuickElement("wp:term_taxonomy", term.taxonomy.name)
        xml.addQuickElement("wp:term_slug", term.slug)
        xml.addQuickElement("wp:term_parent", term.parent.slug if term.parent else "")
        xml.addQuickElement("wp:term_name", term.name)
        xml.addQuickElement("wp:term_description", term.description)
        xml.endElement("wp:term")

    posts = (
        Post.objects.for_site(site)
        .not_trashed()
        .select_related("post_type", "author", "parent")
        .prefetch_related("meta")
    )
    for post in posts:
        date = post.published_at or post.created_at
        xml.startElement("item", {})
        xml.addQuickElement("title", post.title)
        xml.addQuickElement("link", base_url + post.get_absolute_url())
        xml.addQuickElement("pubDate", rfc2822_date(date))
        xml.addQuickElement("dc:creator", post.author.get_username() if post.author else "")
        xml.addQuickElement("guid", f"{base_url}/?p={post.pk}", {"isPermaLink": "false"})
        xml.addQuickElement("description", "")
        xml.addQuickElement("content:encoded", post.content)
        xml.addQuickElement("excerpt:encoded", post.excerpt)
        xml.addQuickElement("wp:post_id", str(post.pk))
        xml.addQuickElement("wp:post_date", date.strftime("%Y-%m-%d %H:%M:%S"))
        xml.addQuickElement("wp:post_modified", post.updated_at.strftime("%Y-%m-%d %H:%M:%S"))
        xml.addQuickElement("wp:comment_status", post.comment_status)
        xml.addQuickElement("wp:post_name", post.slug)
        xml.addQuickElement("wp:status", "publish" if post.is_published else post.status)
        xml.addQuickElement("wp:post_parent", str(post.parent_id or 0))
        xml.addQuickElement("wp:menu_order", str(post.menu_order))
        xml.addQuickElement("wp:post_type", post.post_type.name)
        xml.addQuickElement("wp:post_password", post.password)
        for item in post.meta.all():
            xml.startElement("wp:postmeta", {})
            xml.addQuickElement("wp:meta_key", item.key)
            xml.addQuickElement("wp:meta_value", item.value)
            xml.endElement("wp:postmeta")
        for term in post.get_terms():
            xml.addQuickElement(
                "category",
                term.name,
                {"domain": term.taxonomy.name, "nicename": term.slug},
            )
        xml.endElement("item")

    xml.endElement("channel")
    xml.endElement("rss")
    xml.endDocument()
    return out.getvalue()


def export_posts_csv(site, stream):
    """Write a site's posts as CSV rows to a text stream."""
    writer = csv.writer(stream)
    writer.writerow(CSV_COLUMNS)
    posts = Post.objects.for_site(site).select_related("post_type").order_by("id")
    for post in posts:
        writer.writerow([
            post.pk,
            post.title,
            post.slug,
            post.content,
            post.excerpt,
            post.status,
            post.post_type.name,
            post.author_id or "",
            post.featured_image_id or "",
            post.parent_id or "",
            post.menu_order,
            _isoformat(post.published_at) or "",
            _isoformat(post.created_at),
            _isoformat(post.updated_at),
        ])
    return stream


def _pick(entry, fields):
    return {field: entry[field] for field in fields if field in entry}


def _import_post_types(site, entries, counts):
    for entry in entries:
        PostType.objects.update_or_create(
            site=site, name=entry["name"], defaults=_pick(entry, POST_TYPE_FIELDS)
        )
        counts["post_types"] += 1


def _import_taxonomies(site, entries, counts):
    for entry in entries:
        taxonomy, _ = Taxonomy.objects.update_or_create(
            site=site, name=entry["name"], defaults=_pick(entry, TAXONOMY_FIELDS)
        )
        if "post_types" in entry:
            taxonomy.post_types.set(
                PostType.objects.filter(site=site, name__in=entry["post_types"])
            )
        counts["taxonomies"] += 1

        terms = entry.get("terms", [])
        by_slug = {}
        for term_entry in terms:
            term, _ = Term.objects.update_or_create(
                taxonomy=taxonomy,
                slug=term_entry["slug"],
                defaults={
                    "site": site,
                    "name": term_entry["name"],
                    "description": term_entry.get("description", ""),
                    "meta": term_entry.get("meta") or {},
                },
            )
            by_slug[term.slug] = term
            counts["terms"] += 1

        # Parents are linked once every term exists
        for term_entry in terms:
            parent_slug = term_entry.get("parent")
            parent = by_slug.get(parent_slug) if parent_slug else None
            if parent_slug and parent is None:
                parent = taxonomy.terms.filter(slug=parent_slug).first()
            term = by_slug[term_entry["slug"]]
            if term.parent_id != (parent.pk if parent else None):
                term.parent = parent
                term.save(update_fields=["parent", "updated_at"])


def _import_posts(site, entries, counts):
    User = get_user_model()
    post_types = {pt.name: pt for pt in site.post_types.all()}
    taxonomies = {tax.name: tax for tax in site.taxonomies.all()}
    imported = {}

    for entry in entries:
        post_type = post_types.get(entry.get("post_type"))
        if post_type is None:
            logger.warning("Skipping post %r: unknown post type %r", entry.get("slug"), entry.get("post_type"))
            counts["skipped"] += 1
            continue

        defaults = _pick(entry, POST_FIELDS)
        defaults["post_type"] = post_type
        for field in POST_DATE_FIELDS:
            if entry.get(field):
                defaults[field] = parse_datetime(entry[field])
        if entry.get("author"):
            defaults["author"] = User.objects.filter(**{User.USERNAME_FIELD: entry["author"]}).first()
        if entry.get("featured_image"):
            defaults["featured_image"] = Media.objects.filter(
                site=site, content_hash=entry["featured_image"]
            ).first()

        post, _ = Post.objects.update_or_create(site=site, slug=entry["slug"], defaults=defaults)
        for key, value in (entry.get("meta") or {}).items():
            post.set_meta(key, value)
        for taxonomy_name, slugs in (entry.get("terms") or {}).items():
            taxonomy = taxonomies.get(taxonomy_name)
            if taxonomy is None:
                continue
            by_slug = {term.slug: term for term in taxonomy.terms.filter(slug__in=slugs)}
            post.set_terms(taxonomy, [by_slug[slug] for slug in slugs if slug in by_slug])
        imported[post.slug] = (post, entry.get("parent"))
        counts["posts"] += 1

    for post, parent_slug in imported.values():
        parent = None
        if parent_slug:
            parent = Post.objects.filter(site=site, slug=parent_slug).first()
        if post.parent_id != (parent.pk if parent else None):
            post.parent = parent
            post.save(update_fields=["parent", "updated_at"])


def _find_menu_target(site, item_type, key):
    if not key:
        return None
    if item_type == MenuItem.TYPE_POST:
        return Post.objects.filter(site=site, slug=key).first()
    if item_type == MenuItem.TYPE_TERM:
        taxonomy_name, _, slug = key.partition("/")
        return Term.objects.filter(site=site, taxonomy__name=taxonomy_name, slug=slug).first()
    if item_type == MenuItem.TYPE_POST_TYPE:
        return PostType.objects.filter(site=site, name=key).first()
    if item_type == MenuItem.TYPE_TAXONOMY:
        return Taxonomy.objects.filter(site=site, name=key).first()
    return None


def _import_menus(site, section, counts):
    locations = {}
    for entry in section.get("locations", []):
        location, _ = MenuLocation.objects.update_or_create(
            site=site,
            name=entry["name"],
            defaults={
                "display_name": entry.get("display_name", entry["name"]),
                "description": entry.get("description", ""),
            },
        )
        locations[location.name] = location

    for entry in section.get("menus", []):
        location = None
        if entry.get("location"):
            location = locations.get(entry["location"]) or MenuLocation.objects.filter(
                site=site, name=entry["location"]
            ).first()
        if location is not None:
            Menu.objects.filter(location=location).exclude(site=site, name=entry["name"]).update(location=None)
        menu, _ = Menu.objects.update_or_create(
            site=site,
            name=entry["name"],
            defaults={
                "display_name": entry.get("display_name", entry["name"]),
                "description": entry.get("description", ""),
                "location": location,
            },
        )
        counts["menus"] += 1

        # Items are replaced wholesale so repeated imports converge
        menu.items.all().delete()
        created = {}
        item_entries = entry.get("items", [])
        for item_entry in item_entries:
            item = MenuItem(menu=menu, **_pick(item_entry, MENU_ITEM_FIELDS))
            if item.item_type != MenuItem.TYPE_CUSTOM:
                target = _find_menu_target(site, item.item_type, item_entry.get("object"))
                if target is None:
                    counts["skipped"] += 1
                    continue
                item.object_id = target.pk
            item.save()
            created[item_entry.get("ref")] = item
            counts["menu_items"] += 1

        for item_entry in item_entries:
            item = created.get(item_entry.get("ref"))
            parent = created.get(item_entry.get("parent"))
            if item is not None and parent is not None:
                item.parent = parent
                item.save(update_fields=["parent", "updated_at"])


def _import_settings(site, entries, counts):
    for entry in entries:
        Setting.objects.update_or_create(site=site, key=entry["key"], defaults=_pick(entry, SETTING_FIELDS))
        counts["settings"] += 1


def _import_users(site, entries, counts):
    User = get_user_model()
    roles = {role.name: role for role in Role.objects.all()}
    for entry in entries:
        role = roles.get(entry.get("role"))
        if role is None:
            counts["skipped"] += 1
            continue
        user, created = User.objects.get_or_create(
            **{User.USERNAME_FIELD: entry["username"]},
            defaults={
                "email": entry.get("email", ""),
                "first_name": entry.get("first_name", ""),
                "last_name": entry.get("last_name", ""),
            },
        )
        if created:
            user.set_unusable_password()
            user.save(update_fields=["password"])
        SiteUser.objects.update_or_create(site=site, user=user, defaults={"role": role})
        counts["users"] += 1


@transaction.atomic
def import_site(site, payload, user=None):
    """
    Import an export payload into a site.

    Rows are matched by natural key and updated in place, so importing the
    same payload twice changes nothing. Media files are not transferred:
    media entries are counted as skipped.

    Returns:
        dict of per-section counts

    Raises:
        ValidationError: if the payload is malformed
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        raise ValidationError("Import payload must be an object with a 'data' section.")
    data = payload["data"]

    counts = {
        "post_types": 0,
        "taxonomies": 0,
        "terms": 0,
        "posts": 0,
        "menus": 0,
        "menu_items": 0,
        "settings": 0,
        "users": 0,
        "media_skipped": 0,
        "skipped": 0,
    }

    try:
        _import_post_types(site, data.get("post_types", []), counts)
        _import_taxonomies(site, data.get("taxonomies", []), counts)
        _import_users(site, data.get("users", []), counts)
        _import_posts(site, data.get("posts", []), counts)
        _import_menus(site, data.get("menus", {}), counts)
        _import_settings(site, data.get("settings", []), counts)
    except (KeyError, TypeError, AttributeError) as exc:
        raise ValidationError(f"Malformed import payload: {exc}")
    counts["media_skipped"] = len(data.get("media", []))

    logger.info("Imported into site %s: %s", site.name, counts)
    return counts
