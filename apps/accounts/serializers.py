from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from apps.utils.validators import validate_phone
from .models import User, Role


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    full_name = serializers.CharField(max_length=255)
    phone_number = serializers.CharField(max_length=15, required=False, allow_blank=True)
    company_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    # Admin accounts are never self-registered
    role = serializers.ChoiceField(choices=[Role.BUYER, Role.SUPPLIER], default=Role.BUYER)

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("An account with this email already exists.")
        return value.lower()

    def validate_phone_number(self, value):
        if value:
            validate_phone(value)
        return value

    def validate_password(self, value):
        validate_password(value)
        return value


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'email', 'full_name', 'phone_number', 'company_name', 'role', 'date_joined']
        read_only_fields = fields
