from rest_framework import serializers
from djoser.serializers import UserSerializer as BaseUserSerializer
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core import exceptions as django_exceptions

from .models import UserRole, PROVISIONED_ROLES

User = get_user_model()


class CustomUserSerializer(BaseUserSerializer):
    groups = serializers.StringRelatedField(many=True, read_only=True)
    rollNumber = serializers.CharField(source='roll_number', read_only=True, allow_null=True)

    class Meta(BaseUserSerializer.Meta):
        model = User
        fields = ['id', 'name', 'email', 'role', 'department', 'year', 'section', 'rollNumber', 'groups']
        read_only_fields = ['id', 'email', 'role', 'department', 'year', 'section', 'groups']


class LoginSerializer(serializers.Serializer):
    email = serializers.CharField()
    password = serializers.CharField(required=False, allow_blank=True, write_only=True)
    federated = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if not attrs.get('federated') and not attrs.get('password'):
            raise serializers.ValidationError({'password': 'Password is required for password login.'})
        return attrs


class ProvisionUserSerializer(serializers.ModelSerializer):
    """
    Used by administrators to create class teacher and CR accounts.
    Their scope is fixed here and cannot be edited afterwards.
    """
    password = serializers.CharField(write_only=True)
    rollNumber = serializers.CharField(source='roll_number', required=False, allow_blank=True, allow_null=True)

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'password', 'role', 'department', 'year', 'section', 'rollNumber']
        read_only_fields = ['id']

    def validate_role(self, value):
        if value not in PROVISIONED_ROLES:
            raise serializers.ValidationError('Only class teacher and CR accounts are provisioned.')
        return value

    def validate(self, attrs):
        missing = [field for field in ('department', 'year', 'section') if not attrs.get(field)]
        if missing:
            raise serializers.ValidationError({field: 'This field is required.' for field in missing})
        if attrs['role'] == UserRole.CR and not attrs.get('roll_number'):
            raise serializers.ValidationError({'rollNumber': 'A CR account needs a roll number.'})

        password = attrs.get('password')
        user = User(**{k: v for k, v in attrs.items() if k != 'password'})
        try:
            validate_password(password, user)
        except django_exceptions.ValidationError as e:
            raise serializers.ValidationError({'password': list(e.messages)})
        return attrs

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, **validated_data)
