from django.apps import AppConfig


class PermitManagementConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'permit_management'
    verbose_name = 'Permission requests'
