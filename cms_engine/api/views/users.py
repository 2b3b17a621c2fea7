"""
User and role endpoints.
"""
from django.contrib.auth import get_user_model, password_validation
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q

from ...models import Role, SiteUser
from ...permissions import has_permission
from ..base import ApiView
from ..response import ApiError, api_success
from ..serializers import serialize_role, serialize_user
from ..validation import parse_bool, parse_sort, require_fields, validate_email, validate_slug

User = get_user_model()

SORT_FIELDS = {
    "id": "id",
    "username": "username",
    "email": "email",
    "date_joined": "date_joined",
    "last_login": "last_login",
}


def check_password(password, user=None):
    try:
        password_validation.validate_password(password, user)
    except ValidationError as exc:
        raise ApiError.validation(exc.messages[0], "password", {"password": exc.messages})


class UserMixin:

    def get_role(self, name):
        role = Role.objects.filter(name=name).first()
        if role is None:
            raise ApiError.validation(f"Unknown role: {name}", "role")
        if role.name == "super_admin":
            self.require_superuser()
        return role

    def visible_users(self):
        users = User.objects.all()
        if not self.user.is_superuser:
            users = users.filter(site_memberships__site=self.site)
        return users

    def apply_user_data(self, user, data):
        if "username" in data:
            username = str(data["username"]).strip()
            if User.objects.filter(username__iexact=username).exclude(pk=user.pk).exists():
                raise ApiError.conflict(f"Username '{username}' already exists")
            user.username = username
        if "email" in data:
            email = validate_email(str(data["email"]).strip())
            if User.objects.filter(email__iexact=email).exclude(pk=user.pk).exists():
                raise ApiError.conflict(f"Email '{email}' already exists")
            user.email = email
        for field in ("first_name", "last_name"):
            if field in data:
                setattr(user, field, data[field] or "")
        if data.get("password"):
            check_password(data["password"], user)
            user.set_password(data["password"])


class UserCollectionView(UserMixin, ApiView):
    """List users of the current site and create users."""

    def get(self, request):
        self.require_permission("manage_users")
        users = self.visible_users()
        role = request.GET.get("role")
        if role:
            users = users.filter(site_memberships__site=self.site, site_memberships__role__name=role)
        search = request.GET.get("search", "").strip()
        if search:
            users = users.filter(
                Q(username__icontains=search)
                | Q(email__icontains=search)
                | Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
            )
        users = users.order_by(parse_sort(request, SORT_FIELDS, "username")).distinct()
        return self.paginate(users, lambda user: serialize_user(user, self.site))

    def post(self, request):
        self.require_permission("manage_users")
        data = self.get_data()
        require_fields(data, ["username", "email", "password"])
        role = self.get_role(data.get("role", "subscriber"))

        user = User(is_active=parse_bool(data.get("is_active", True)))
        with transaction.atomic():
            self.apply_user_data(user, data)
            user.save()
            SiteUser.objects.create(site=self.site, user=user, role=role)

        self.log("user_create", user, after={"role": role.name})
        return api_success(serialize_user(user, self.site), status=201)


class UserDetailView(UserMixin, ApiView):
    """
    Read, update or delete a user.

    Users may read and edit their own profile; everything else needs
    manage_users on the current site.
    """

    def get_target(self, pk):
        if pk == self.user.pk:
            return self.user
        self.require_permission("manage_users")
        user = self.visible_users().filter(pk=pk).first()
        if user is None:
            raise ApiError.not_found("User", pk)
        return user

    def get(self, request, pk):
        return api_success(serialize_user(self.get_target(pk), self.site))

    def put(self, request, pk):
        user = self.get_target(pk)
        if user.is_superuser and not self.user.is_superuser:
            raise ApiError.insufficient_permissions("Only super admins can edit super admins")
        data = self.get_data()
        if not data:
            raise ApiError.bad_request("No fields to update")

        with transaction.atomic():
            self.apply_user_data(user, data)
            if "is_active" in data:
                if user.pk == self.user.pk:
                    raise ApiError.bad_request("You cannot deactivate your own account")
                self.require_permission("manage_users")
                user.is_active = parse_bool(data["is_active"])
            user.save()
            if data.get("role"):
                self.require_permission("manage_users")
                if user.pk == self.user.pk and not self.user.is_superuser:
                    raise ApiError.bad_request("You cannot change your own role")
                SiteUser.objects.update_or_create(
                    site=self.site, user=user, defaults={"role": self.get_role(data["role"])}
                )
                user.__dict__.pop("_cms_role_cache", None)

        self.log("user_update", user)
        return api_success(serialize_user(user, self.site))

    patch = put

    def delete(self, request, pk):
        self.require_permission("manage_users")
        if pk == self.user.pk:
            raise ApiError.bad_request("You cannot delete your own account")
        user = self.get_target(pk)
        if user.is_superuser and not self.user.is_superuser:
            raise ApiError.insufficient_permissions("Only super admins can delete super admins")
        name = user.get_username()
        user.delete()
        self.log("user_delete", entity_type="user", entity_id=pk, entity_name=name)
        return api_success({"id": pk, "deleted": True})


class RoleCollectionView(ApiView):
    """List roles; super admins create custom roles."""

    site_required = False

    def get(self, request):
        return api_success([serialize_role(role) for role in Role.objects.all()])

    def post(self, request):
        self.require_superuser()
        data = self.get_data()
        require_fields(data, ["name"])
        name = validate_slug(data["name"], "name")
        if Role.objects.filter(name=name).exists():
            raise ApiError.duplicate("name", name)
        permissions = data.get("permissions", {})
        if not isinstance(permissions, dict):
            raise ApiError.validation("permissions must be an object", "permissions")
        role = Role.objects.create(
            name=name,
            label=data.get("label") or name.replace("_", " ").title(),
            description=data.get("description", ""),
            permissions={key: bool(value) for key, value in permissions.items()},
        )
        return api_success(serialize_role(role), status=201)


class RoleDetailView(ApiView):
    """Read, update or delete a role; system roles cannot be deleted."""

    site_required = False

    def get_role(self, pk):
        role = Role.objects.filter(pk=pk).first()
        if role is None:
            raise ApiError.not_found("Role", pk)
        return role

    def get(self, request, pk):
        return api_success(serialize_role(self.get_role(pk)))

    def put(self, request, pk):
        self.require_superuser()
        role = self.get_role(pk)
        data = self.get_data()
        for field in ("label", "description"):
            if field in data:
                setattr(role, field, data[field] or "")
        if "permissions" in data:
            if not isinstance(data["permissions"], dict):
                raise ApiError.validation("permissions must be an object", "permissions")
            role.permissions = {key: bool(value) for key, value in data["permissions"].items()}
        role.save()
        return api_success(serialize_role(role))

    patch = put

    def delete(self, request, pk):
        self.require_superuser()
        role = self.get_role(pk)
        if role.is_system:
            raise ApiError.forbidden("Cannot delete system role")
        if role.memberships.exists():
            raise ApiError.conflict("Role is assigned to users")
        role.delete()
        return api_success({"id": pk, "deleted": True})
