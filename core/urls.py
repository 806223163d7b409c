"""
URL configuration for core project.

Everything is served under `api/v1/`; the schema and its UIs sit beside the apps.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView, SpectacularSwaggerView
from . import views

API_PREFIX = 'api/v1/'


urlpatterns = [
    path('admin/', admin.site.urls),
    # drf-spectacular
    path(f'{API_PREFIX}schema/', SpectacularAPIView.as_view(), name='schema'),
    path(f'{API_PREFIX}schema-ui/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path(f'{API_PREFIX}schema/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),

    path(f'{API_PREFIX}health/', views.health, name='health'),
    path(f'{API_PREFIX}accounts/', include('users.urls')),
    path(f'{API_PREFIX}notifications/', include('notifications.urls')),
    path(f'{API_PREFIX}', include('permit_management.urls')),
]
