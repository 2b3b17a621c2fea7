"""
Site and global settings endpoints.
"""
from django.db import transaction

from ...models import GlobalSetting, Setting
from ...permissions import has_permission
from ..base import ApiView
from ..response import ApiError, api_success
from ..serializers import serialize_global_setting, serialize_setting
from ..validation import validate_choice

VALUE_TYPES = [choice for choice, _ in Setting.TYPE_CHOICES]


def check_value(key, value, value_type):
    """Reject values that cannot be stored as value_type."""
    if value_type == "number" and value is not None:
        if isinstance(value, bool):
            raise ApiError.validation(f"{key} must be a number", key)
        try:
            float(value)
        except (TypeError, ValueError):
            raise ApiError.validation(f"{key} must be a number", key)
    if value_type in ("string", "text") and isinstance(value, (dict, list)):
        raise ApiError.validation(f"{key} must be a string", key)


class SiteSettingsView(ApiView):
    """
    Read or bulk-update the current site's settings.

    Users without manage_settings only see public settings. PUT takes
    {"key": value, ...} or {"settings": {"key": value, ...}}.
    """

    def get(self, request):
        settings = Setting.objects.filter(site=self.site)
        if not has_permission(self.user, self.site, "manage_settings"):
            settings = settings.filter(is_public=True)
        group = request.GET.get("group")
        if group:
            settings = settings.filter(group=group)
        return api_success({setting.key: serialize_setting(setting) for setting in settings})

    def put(self, request):
        self.require_permission("manage_settings")
        data = self.get_data()
        values = data.get("settings", data)
        if not isinstance(values, dict) or not values:
            raise ApiError.bad_request("No settings to update")

        existing = {setting.key: setting for setting in Setting.objects.filter(site=self.site, key__in=values)}
        before = {key: setting.typed_value for key, setting in existing.items()}
        updated = []
        with transaction.atomic():
            for key, value in values.items():
                value_type = existing[key].value_type if key in existing else "string"
                check_value(key, value, value_type)
                updated.append(Setting.set_value(self.site, key, value))

        self.log(
            "settings_update",
            entity_type="settings",
            entity_name=", ".join(sorted(values)),
            before=before,
            after={setting.key: setting.typed_value for setting in updated},
        )
        return api_success({setting.key: serialize_setting(setting) for setting in updated})

    post = put
    patch = put


class SiteSettingDetailView(ApiView):
    """Read, set or delete one site setting by key."""

    def get(self, request, key):
        setting = Setting.objects.filter(site=self.site, key=key).first()
        if setting is None:
            raise ApiError.not_found("Setting", key)
        if not setting.is_public and not has_permission(self.user, self.site, "manage_settings"):
            raise ApiError.insufficient_permissions()
        return api_success(serialize_setting(setting))

    def put(self, request, key):
        self.require_permission("manage_settings")
        data = self.get_data()
        if "value" not in data:
            raise ApiError.validation("value is required", "value")

        existing = Setting.objects.filter(site=self.site, key=key).first()
        value_type = data.get("value_type")
        if value_type:
            validate_choice(value_type, "value_type", VALUE_TYPES)
        check_value(key, data["value"], value_type or (existing.value_type if existing else "string"))

        fields = {name: data[name] for name in ("group", "label", "description") if name in data}
        if "is_public" in data:
            fields["is_public"] = bool(data["is_public"])
        before = existing.typed_value if existing else None
        setting = Setting.set_value(self.site, key, data["value"], value_type, **fields)
        self.log(
            "settings_update",
            entity_type="settings",
            entity_name=key,
            before={key: before},
            after={key: setting.typed_value},
        )
        return api_success(serialize_setting(setting), status=200 if existing else 201)

    patch = put

    def delete(self, request, key):
        self.require_permission("manage_settings")
        setting = Setting.objects.filter(site=self.site, key=key).first()
        if setting is None:
            raise ApiError.not_found("Setting", key)
        setting.delete()
        self.log("settings_update", entity_type="settings", entity_name=key, details="Deleted")
        return api_success({"key": key, "deleted": True})


class GlobalSettingsView(ApiView):
    """Deployment-wide settings; super admins only."""

    site_required = False

    def get(self, request):
        self.require_superuser()
        return api_success([serialize_global_setting(setting) for setting in GlobalSetting.objects.all()])

    def put(self, request):
        self.require_superuser()
        data = self.get_data()
        values = data.get("settings", data)
        if not isinstance(values, dict) or not values:
            raise ApiError.bad_request("No settings to update")
        with transaction.atomic():
            updated = [GlobalSetting.set_value(key, value) for key, value in values.items()]
        self.log("settings_update", entity_type="global_settings", entity_name=", ".join(sorted(values)), site=None)
        return api_success([serialize_global_setting(setting) for setting in updated])

    post = put
    patch = put


class GlobalSettingDetailView(ApiView):
    """Read, set or delete one global setting."""

    site_required = False

    def get(self, request, key):
        self.require_superuser()
        setting = GlobalSetting.objects.filter(key=key).first()
        if setting is None:
            raise ApiError.not_found("Setting", key)
        return api_success(serialize_global_setting(setting))

    def put(self, request, key):
        self.require_superuser()
        data = self.get_data()
        if "value" not in data:
            raise ApiError.validation("value is required", "value")
        value_type = data.get("value_type")
        if value_type:
            validate_choice(value_type, "value_type", VALUE_TYPES)
        setting = GlobalSetting.set_value(key, data["value"], value_type)
        if "description" in data:
            setting.description = data["description"] or ""
            setting.save(update_fields=["description", "updated_at"])
        self.log("settings_update", entity_type="global_settings", entity_name=key, site=None)
        return api_success(serialize_global_setting(setting))

    patch = put

    def delete(self, request, key):
        self.require_superuser()
        deleted, _ = GlobalSetting.objects.filter(key=key).delete()
        if not deleted:
            raise ApiError.not_found("Setting", key)
        self.log("settings_update", entity_type="global_settings", entity_name=key, details="Deleted", site=None)
        return api_success({"key": key, "deleted": True})
