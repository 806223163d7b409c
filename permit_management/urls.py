from django.urls import path, include
from rest_framework.routers import DefaultRouter
from permit_management.views.permission_request_views import PermissionRequestViewSet

router = DefaultRouter()
router.register(r'permission-requests', PermissionRequestViewSet, basename='permissionrequest')

urlpatterns = [
    path('', include(router.urls)),
]
