import logging
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema

from core import permissions as core_permissions
from . import models, serializers
from .helpers import LoginError, login_with_password, login_with_college_mail, issue_tokens

logger = logging.getLogger(__name__)


class LoginView(APIView):
    """
    Single login endpoint for both sign-in paths.

    `federated=true` is taken on trust: no identity token from the mail provider
    is checked here, and any address on COLLEGE_EMAIL_DOMAIN gets real tokens.
    Deploy only behind a front end or gateway that has already verified the
    address. Without the flag a password is required.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(request=serializers.LoginSerializer)
    def post(self, request):
        serializer = serializers.LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'success': False, 'error': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        try:
            if data['federated']:
                user = login_with_college_mail(data['email'])
            else:
                user = login_with_password(data['email'], data.get('password'))
        except LoginError as e:
            logger.info(f"Login refused for {data['email']}: {e.message}")
            return Response({'success': False, 'error': e.message}, status=e.status_code)

        return Response({
            'success': True,
            'user': serializers.CustomUserSerializer(user).data,
            **issue_tokens(user),
        })


class UserViewSet(viewsets.ModelViewSet):
    """
    Administrators provision class teacher and CR accounts here.
    Every signed in user can read their own profile through `me`.
    """
    queryset = models.CustomUser.objects.all().order_by('id')
    http_method_names = ['get', 'post', 'delete']
    permission_classes = [core_permissions.IsAdminUser]

    def get_queryset(self):
        return models.CustomUser.objects.all().order_by('id').prefetch_related('groups')

    def get_serializer_class(self):
        if self.request.method.lower() == 'post':
            return serializers.ProvisionUserSerializer
        return serializers.CustomUserSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(f"Provisioned {user.role} account {user.email} for {user.department}-{user.year}-{user.section}")
        return Response(serializers.CustomUserSerializer(user).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'], url_path='me', permission_classes=[IsAuthenticated])
    def me(self, request):
        serializer = serializers.CustomUserSerializer(request.user)
        return Response(serializer.data)
