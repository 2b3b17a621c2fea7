"""
URL configuration for the REST API, mounted at api/v1/.
"""
from django.urls import path

from .views import auth, general, media, menus, post_types, posts, settings, sites, taxonomies, tools, users

app_name = "api"

urlpatterns = [
    # General
    path("", general.ApiIndexView.as_view(), name="index"),
    path("health/", general.HealthView.as_view(), name="health"),

    # Authentication
    path("auth/login/", auth.LoginView.as_view(), name="login"),
    path("auth/logout/", auth.LogoutView.as_view(), name="logout"),
    path("auth/me/", auth.MeView.as_view(), name="me"),
    path("auth/refresh/", auth.RefreshView.as_view(), name="refresh"),
    path("auth/switch-site/", auth.SwitchSiteView.as_view(), name="switch_site"),

    # Posts
    path("posts/", posts.PostCollectionView.as_view(), name="posts"),
    path("posts/trash/", posts.EmptyTrashView.as_view(), name="posts_trash"),
    path("posts/autosave/", posts.AutosaveView.as_view(), name="posts_autosave"),
    path("posts/process-scheduled/", posts.ProcessScheduledView.as_view(), name="process_scheduled"),
    path("posts/<int:pk>/", posts.PostDetailApiView.as_view(), name="post_detail"),
    path("posts/<int:pk>/restore/", posts.PostRestoreView.as_view(), name="post_restore"),
    path("posts/<int:pk>/autosave/", posts.AutosaveView.as_view(), name="post_autosave"),
    path("posts/<int:pk>/revisions/", posts.PostRevisionsView.as_view(), name="post_revisions"),
    path(
        "posts/<int:pk>/revisions/<int:revision_id>/restore/",
        posts.RevisionRestoreView.as_view(),
        name="revision_restore",
    ),

    # Post types
    path("post-types/", post_types.PostTypeCollectionView.as_view(), name="post_types"),
    path("post-types/<int:pk>/", post_types.PostTypeDetailView.as_view(), name="post_type_detail"),

    # Taxonomies and terms
    path("taxonomies/", taxonomies.TaxonomyCollectionView.as_view(), name="taxonomies"),
    path("taxonomies/<int:pk>/", taxonomies.TaxonomyDetailView.as_view(), name="taxonomy_detail"),
    path("terms/", taxonomies.TermCollectionView.as_view(), name="terms"),
    path("terms/<int:pk>/", taxonomies.TermDetailView.as_view(), name="term_detail"),

    # Media
    path("media/", media.MediaCollectionView.as_view(), name="media"),
    path("media/trash/", media.MediaEmptyTrashView.as_view(), name="media_trash"),
    path("media/regenerate/", media.MediaRegenerateView.as_view(), name="media_regenerate_all"),
    path("media/folders/", media.FolderCollectionView.as_view(), name="media_folders"),
    path("media/folders/<int:pk>/", media.FolderDetailView.as_view(), name="media_folder_detail"),
    path("media/<int:pk>/", media.MediaDetailView.as_view(), name="media_detail"),
    path("media/<int:pk>/restore/", media.MediaRestoreView.as_view(), name="media_restore"),
    path("media/<int:pk>/regenerate/", media.MediaRegenerateView.as_view(), name="media_regenerate"),

    # Menus
    path("menus/", menus.MenuCollectionView.as_view(), name="menus"),
    path("menus/location/<slug:location>/", menus.PublicMenuView.as_view(), name="menu_by_location"),
    path("menus/<int:pk>/", menus.MenuDetailView.as_view(), name="menu_detail"),
    path("menus/<int:pk>/items/", menus.MenuItemCollectionView.as_view(), name="menu_items"),
    path("menus/<int:pk>/items/reorder/", menus.MenuItemReorderView.as_view(), name="menu_items_reorder"),
    path("menus/<int:pk>/items/<int:item_id>/", menus.MenuItemDetailView.as_view(), name="menu_item_detail"),
    path("menu-locations/", menus.MenuLocationCollectionView.as_view(), name="menu_locations"),
    path("menu-locations/<int:pk>/", menus.MenuLocationDetailView.as_view(), name="menu_location_detail"),

    # Settings
    path("settings/site/", settings.SiteSettingsView.as_view(), name="site_settings"),
    path("settings/site/<str:key>/", settings.SiteSettingDetailView.as_view(), name="site_setting_detail"),
    path("settings/global/", settings.GlobalSettingsView.as_view(), name="global_settings"),
    path("settings/global/<str:key>/", settings.GlobalSettingDetailView.as_view(), name="global_setting_detail"),

    # Sites
    path("sites/", sites.SiteCollectionView.as_view(), name="sites"),
    path("sites/<int:pk>/", sites.SiteDetailView.as_view(), name="site_detail"),
    path("sites/<int:pk>/users/", sites.SiteUserCollectionView.as_view(), name="site_users"),
    path("sites/<int:pk>/users/<int:user_id>/", sites.SiteUserDetailView.as_view(), name="site_user_detail"),

    # Users and roles
    path("users/", users.UserCollectionView.as_view(), name="users"),
    path("users/<int:pk>/", users.UserDetailView.as_view(), name="user_detail"),
    path("roles/", users.RoleCollectionView.as_view(), name="roles"),
    path("roles/<int:pk>/", users.RoleDetailView.as_view(), name="role_detail"),

    # Tools
    path("activity/", tools.ActivityLogView.as_view(), name="activity"),
    path("export/", tools.ExportView.as_view(), name="export"),
    path("import/", tools.ImportView.as_view(), name="import"),
]
