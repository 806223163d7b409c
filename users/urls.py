from django.urls import path, include
from rest_framework import routers
from rest_framework_simplejwt.views import TokenBlacklistView
from .viewsets import UserViewSet, LoginView

router = routers.DefaultRouter()
router.register(r'users', UserViewSet, basename='user')

urlpatterns = [
    path('', include(router.urls), name='user-list'),
    path('login/', LoginView.as_view(), name='login'),
    path('auth/', include('djoser.urls.jwt'), name='auth-jwt'),
    path('auth/jwt/blacklist/', TokenBlacklistView.as_view(), name='token-blacklist'),
]
