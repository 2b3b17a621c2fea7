"""
Functions turning models into JSON-ready dicts for the API.
"""
from ..permissions import get_role_name


def serialize_user(user, site=None, brief=False):
    data = {
        "id": user.pk,
        "username": user.get_username(),
        "display_name": user.get_full_name() or user.get_username(),
    }
    if brief:
        return data
    data.update({
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "is_active": user.is_active,
        "is_superuser": user.is_superuser,
        "date_joined": user.date_joined,
        "last_login": user.last_login,
    })
    if site is not None:
        data["role"] = get_role_name(user, site)
    return data


def serialize_role(role):
    return {
        "id": role.pk,
        "name": role.name,
        "label": role.label,
        "description": role.description,
        "permissions": role.permissions,
        "is_system": role.is_system,
    }


def serialize_site(site):
    return {
        "id": site.pk,
        "name": site.name,
        "display_name": site.display_name,
        "description": site.description,
        "domain": site.domain,
        "is_active": site.is_active,
        "created_at": site.created_at,
        "updated_at": site.updated_at,
    }


def serialize_site_user(membership):
    data = serialize_user(membership.user)
    data["role"] = membership.role.name
    data["assigned_at"] = membership.assigned_at
    return data


def serialize_post_type(post_type):
    return {
        "id": post_type.pk,
        "name": post_type.name,
        "slug": post_type.slug,
        "label": post_type.label,
        "labels": post_type.labels,
        "description": post_type.description,
        "hierarchical": post_type.hierarchical,
        "is_public": post_type.is_public,
        "supports": post_type.supports,
        "menu_icon": post_type.menu_icon,
        "menu_position": post_type.menu_position,
        "show_in_dashboard": post_type.show_in_dashboard,
        "has_archive": post_type.has_archive,
        "url_structure": post_type.url_structure,
        "taxonomies": [taxonomy.name for taxonomy in post_type.taxonomies.all()],
    }


def serialize_taxonomy(taxonomy):
    return {
        "id": taxonomy.pk,
        "name": taxonomy.name,
        "slug": taxonomy.slug,
        "label": taxonomy.label,
        "labels": taxonomy.labels,
        "description": taxonomy.description,
        "hierarchical": taxonomy.hierarchical,
        "is_public": taxonomy.is_public,
        "show_in_dashboard": taxonomy.show_in_dashboard,
        "show_in_menu": taxonomy.show_in_menu,
        "menu_position": taxonomy.menu_position,
        "post_types": [post_type.name for post_type in taxonomy.post_types.all()],
    }


def serialize_term(term):
    data = {
        "id": term.pk,
        "taxonomy_id": term.taxonomy_id,
        "taxonomy": term.taxonomy.name,
        "name": term.name,
        "slug": term.slug,
        "description": term.description,
        "parent_id": term.parent_id,
        "meta": term.meta,
        "url": term.get_absolute_url(),
    }
    if hasattr(term, "num_posts"):
        data["post_count"] = term.num_posts
    return data


def serialize_media(media):
    return {
        "id": media.pk,
        "url": media.file_url,
        "original_filename": media.original_filename,
        "media_type": media.media_type,
        "mime_type": media.mime_type,
        "file_size": media.file_size,
        "human_file_size": media.human_file_size,
        "width": media.width,
        "height": media.height,
        "orientation": media.orientation,
        "alt_text": media.alt_text,
        "caption": media.caption,
        "sizes": media.sizes,
        "srcset": media.get_srcset(),
        "folder_id": media.folder_id,
        "uploaded_by": media.uploaded_by_id,
        "status": media.status,
        "trashed_at": media.trashed_at,
        "created_at": media.created_at,
        "updated_at": media.updated_at,
    }


def serialize_folder(folder):
    return {
        "id": folder.pk,
        "name": folder.name,
        "parent_id": folder.parent_id,
        "created_at": folder.created_at,
    }


def serialize_post(post, include=(), full=False):
    """
    Serialize a post.

    include may name "content", "author", "terms" and "featured_image";
    full implies all of them.
    """
    include = set(include)
    if full:
        include.update(["content", "author", "terms", "featured_image"])

    data = {
        "id": post.pk,
        "title": post.title,
        "slug": post.slug,
        "excerpt": post.excerpt,
        "status": post.status,
        "visibility": post.visibility,
        "post_type": post.post_type.name,
        "author_id": post.author_id,
        "parent_id": post.parent_id,
        "featured_image_id": post.featured_image_id,
        "menu_order": post.menu_order,
        "comment_status": post.comment_status,
        "view_count": post.view_count,
        "url": post.get_absolute_url(),
        "published_at": post.published_at,
        "scheduled_at": post.scheduled_at,
        "trashed_at": post.trashed_at,
        "created_at": post.created_at,
        "updated_at": post.updated_at,
        "meta": post.get_meta_dict(),
    }
    if "content" in include:
        data["content"] = post.content
    if "author" in include:
        data["author"] = serialize_user(post.author, brief=True) if post.author else None
    if "terms" in include:
        terms = {}
        for term in post.get_terms():
            terms.setdefault(term.taxonomy.name, []).append(
                {"id": term.pk, "name": term.name, "slug": term.slug}
            )
        data["terms"] = terms
    if "featured_image" in include:
        data["featured_image"] = serialize_media(post.featured_image) if post.featured_image else None
    return data


def serialize_revision(revision):
    return {
        "id": revision.pk,
        "post_id": revision.post_id,
        "title": revision.title,
        "content": revision.content,
        "excerpt": revision.excerpt,
        "author_id": revision.author_id,
        "created_at": revision.created_at,
    }


def serialize_menu_location(location):
    menu = getattr(location, "menu", None)
    return {
        "id": location.pk,
        "name": location.name,
        "display_name": location.display_name,
        "description": location.description,
        "menu_id": menu.pk if menu else None,
    }


def serialize_menu_item(item):
    return {
        "id": item.pk,
        "menu_id": item.menu_id,
        "parent_id": item.parent_id,
        "item_type": item.item_type,
        "object_id": item.object_id,
        "custom_url": item.custom_url,
        "custom_label": item.custom_label,
        "menu_order": item.menu_order,
        "target": item.target,
        "title_attr": item.title_attr,
        "css_classes": item.css_classes,
        "xfn": item.xfn,
        "description": item.description,
        "meta": {entry.key: entry.value for entry in item.meta.all()},
    }


def serialize_menu(menu, items=False):
    data = {
        "id": menu.pk,
        "name": menu.name,
        "display_name": menu.display_name,
        "description": menu.description,
        "location": menu.location.name if menu.location else None,
        "created_at": menu.created_at,
        "updated_at": menu.updated_at,
    }
    if items:
        data["items"] = [serialize_menu_item(item) for item in menu.items.order_by("menu_order", "id")]
    return data


def serialize_setting(setting):
    return {
        "key": setting.key,
        "value": setting.typed_value,
        "value_type": setting.value_type,
        "group": setting.group,
        "label": setting.label,
        "description": setting.description,
        "is_public": setting.is_public,
        "updated_at": setting.updated_at,
    }


def serialize_global_setting(setting):
    return {
        "key": setting.key,
        "value": setting.value,
        "value_type": setting.value_type,
        "description": setting.description,
        "updated_at": setting.updated_at,
    }


def serialize_activity(entry):
    return {
        "id": entry.pk,
        "action": entry.action,
        "user_id": entry.user_id,
        "site_id": entry.site_id,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "entity_name": entry.entity_name,
        "details": entry.details,
        "changes_before": entry.changes_before,
        "changes_after": entry.changes_after,
        "ip_address": entry.ip_address,
        "user_agent": entry.user_agent,
        "created_at": entry.created_at,
    }
