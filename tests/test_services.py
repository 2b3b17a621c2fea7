"""
Tests for site seeding, scheduled publishing, revisions, password
validation and activity logging.
"""
from datetime import timedelta

import pytest
from django.core.exceptions import ValidationError
from django.test import RequestFactory
from django.utils import timezone

from cms_engine.activity import get_client_ip, log_activity
from cms_engine.bootstrap import create_default_roles, initialize_site_defaults
from cms_engine.models import ActivityLog, GlobalSetting, Post, PostType, Role, Setting
from cms_engine.publishing import publish_due_posts
from cms_engine.revisions import (
    create_revision,
    discard_autosave,
    load_autosave,
    restore_revision,
    store_autosave,
)
from cms_engine.validators import CharacterClassPasswordValidator


class TestBootstrap:
    """Tests for roles and per-site defaults."""

    def test_create_default_roles_is_idempotent(self, roles):
        """Test that running twice creates nothing new."""
        assert create_default_roles() == 0
        assert Role.objects.count() == 7

    def test_initialize_keeps_existing_rows(self, site):
        """Test that re-seeding leaves customised rows alone."""
        Setting.set_value(site, "posts_per_page", 25)
        PostType.objects.filter(site=site, name="post").update(slug="news")
        initialize_site_defaults(site)
        assert site.get_setting("posts_per_page") == 25
        assert site.post_types.get(name="post").slug == "news"
        assert site.post_types.count() == 2

    def test_taxonomies_attached_to_posts(self, category, tag):
        """Test that default taxonomies apply to the post type."""
        assert list(category.post_types.values_list("name", flat=True)) == ["post"]
        assert list(tag.post_types.values_list("name", flat=True)) == ["post"]


class TestPublishing:
    """Tests for scheduled publishing."""

    def test_publishes_due_posts(self, site, other_site, post_type):
        """Test that due posts on every site are published at their scheduled time."""
        past = timezone.now() - timedelta(minutes=5)
        due = Post.objects.create(
            site=site, post_type=post_type, title="Due", status="scheduled", scheduled_at=past,
        )
        later = Post.objects.create(
            site=site,
            post_type=post_type,
            title="Later",
            status="scheduled",
            scheduled_at=timezone.now() + timedelta(days=1),
        )
        elsewhere = Post.objects.create(
            site=other_site,
            post_type=other_site.post_types.get(name="post"),
            title="Elsewhere",
            status="scheduled",
            scheduled_at=past,
        )

        processed, sites_checked = publish_due_posts()
        assert processed == 2
        assert sites_checked == 2

        due.refresh_from_db()
        later.refresh_from_db()
        elsewhere.refresh_from_db()
        assert due.is_published
        assert due.published_at == past
        assert due.scheduled_at is None
        assert later.status == Post.STATUS_SCHEDULED
        assert elsewhere.is_published

    def test_inactive_sites_skipped(self, other_site):
        """Test that inactive sites are not processed."""
        other_site.is_active = False
        other_site.save()
        Post.objects.create(
            site=other_site,
            post_type=other_site.post_types.get(name="post"),
            title="Sleeping",
            status="scheduled",
            scheduled_at=timezone.now() - timedelta(minutes=1),
        )
        assert publish_due_posts() == (0, 0)


class TestRevisions:
    """Tests for revisions and autosaves."""

    def test_restore_revision_snapshots_current(self, published_post, editor):
        """Test that restoring keeps the replaced content as a revision."""
        revision = create_revision(published_post, editor)
        published_post.title = "Changed"
        published_post.save()

        restore_revision(revision, editor)
        published_post.refresh_from_db()
        assert published_post.title == "Hello World"
        assert published_post.revisions.count() == 2
        assert published_post.revisions.first().title == "Changed"

    def test_autosave_per_post_and_new(self, site, published_post, author):
        """Test autosaves for existing posts and for new posts of a type."""
        store_autosave(author, site, {"title": "Draft edit"}, post=published_post)
        store_autosave(author, site, {"title": "Brand new"}, post_type="page")

        assert load_autosave(author, site, post=published_post)["title"] == "Draft edit"
        assert load_autosave(author, site, post_type="page")["title"] == "Brand new"
        assert load_autosave(author, site, post_type="post") is None

        assert discard_autosave(author, site, post=published_post)
        assert not discard_autosave(author, site, post=published_post)


class TestPasswordValidator:
    """Tests for CharacterClassPasswordValidator."""

    def test_strong_password(self, db):
        """Test that a password meeting every rule passes."""
        CharacterClassPasswordValidator().validate("Secret123!")

    @pytest.mark.parametrize("password,code", [
        ("Sh0rt!", "password_too_short"),
        ("secret123!", "password_no_upper"),
        ("SECRET123!", "password_no_lower"),
        ("SecretPass!", "password_no_number"),
        ("Secret1234", "password_no_special"),
    ])
    def test_weak_passwords(self, db, password, code):
        """Test each character class rule."""
        with pytest.raises(ValidationError) as excinfo:
            CharacterClassPasswordValidator().validate(password)
        assert code in [error.code for error in excinfo.value.error_list]

    def test_global_setting_overrides(self, db):
        """Test that the password_requirements global setting relaxes rules."""
        GlobalSetting.set_value("password_requirements", {"require_special": False}, "json")
        CharacterClassPasswordValidator().validate("Secret1234")

    def test_options_override(self, db):
        """Test validator OPTIONS."""
        validator = CharacterClassPasswordValidator(min_length=12)
        with pytest.raises(ValidationError):
            validator.validate("Secret123!")
        assert "12 characters" in validator.get_help_text()


class TestActivity:
    """Tests for activity logging."""

    def test_log_entity(self, site, published_post, editor):
        """Test that an entity fills type, id and name."""
        request = RequestFactory().get("/", HTTP_USER_AGENT="pytest", REMOTE_ADDR="10.0.0.1")
        entry = log_activity("post_update", user=editor, site=site, entity=published_post, request=request)
        assert entry.entity_type == "post"
        assert entry.entity_id == str(published_post.pk)
        assert entry.entity_name == "Hello World"
        assert entry.ip_address == "10.0.0.1"
        assert entry.user_agent == "pytest"
        assert ActivityLog.objects.count() == 1

    def test_forwarded_ip(self):
        """Test that X-Forwarded-For wins over REMOTE_ADDR."""
        request = RequestFactory().get("/", HTTP_X_FORWARDED_FOR="1.2.3.4, 5.6.7.8")
        assert get_client_ip(request) == "1.2.3.4"
        assert get_client_ip(None) is None
