from rest_framework import serializers

from apps.utils.validators import validate_phone, validate_pincode
from .models import Address


class AddressSerializer(serializers.ModelSerializer):
    class Meta:
        model = Address
        fields = [
            "id",
            "full_name",
            "phone",
            "address_line1",
            "address_line2",
            "landmark",
            "city",
            "state",
            "pincode",
            "address_type",
            "is_default",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]

    def validate_phone(self, value):
        return validate_phone(value)

    def validate_pincode(self, value):
        return validate_pincode(value)
