"""
Post revisions and editor autosaves.
"""
import json
import logging

from django.db import transaction
from django.utils import timezone

from .models import PostRevision, UserMeta

logger = logging.getLogger(__name__)


def create_revision(post, user=None):
    """Snapshot a post's current title, content and excerpt."""
    return PostRevision.objects.create(
        post=post,
        title=post.title,
        content=post.content,
        excerpt=post.excerpt,
        author=user if user is not None and user.is_authenticated else None,
    )


@transaction.atomic
def restore_revision(revision, user=None):
    """
    Copy a revision back onto its post.

    The post's current state is snapshotted first so the restore can be
    undone. Returns the updated post.
    """
    post = revision.post
    create_revision(post, user)
    post.title = revision.title
    post.content = revision.content
    post.excerpt = revision.excerpt
    post.save(update_fields=["title", "content", "excerpt", "updated_at"])
    logger.info("Restored revision %s of post %s", revision.pk, post.pk)
    return post


def autosave_key(user, post=None, post_type=None):
    """Return the UserMeta key holding an autosave."""
    if post is not None:
        return f"autosave_post_{post.pk}_user_{user.pk}"
    name = getattr(post_type, "name", post_type)
    return f"autosave_new_{name}_user_{user.pk}"


def store_autosave(user, site, data, post=None, post_type=None):
    """Store an editor draft; returns the saved timestamp."""
    saved_at = timezone.now()
    payload = dict(data, saved_at=saved_at.isoformat())
    UserMeta.set_value(user, autosave_key(user, post, post_type), json.dumps(payload), site=site)
    return saved_at


def load_autosave(user, site, post=None, post_type=None):
    """Return the stored draft dict, or None."""
    raw = UserMeta.get_value(user, autosave_key(user, post, post_type), site=site)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Discarding unreadable autosave for user %s", user.pk)
        return None


def discard_autosave(user, site, post=None, post_type=None):
    """Delete a stored draft. Returns True if one existed."""
    deleted, _ = UserMeta.objects.filter(
        user=user, site=site, key=autosave_key(user, post, post_type)
    ).delete()
    return bool(deleted)
