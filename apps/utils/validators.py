import re
from rest_framework import serializers


def validate_phone(value):
    pattern = r"^\+?\d{10,15}$"
    if not re.match(pattern, str(value)):
        raise serializers.ValidationError("Invalid phone number format.")
    return value


def validate_pincode(value):
    # Indian PIN codes: 6 digits, first digit non-zero
    if not re.match(r"^[1-9]\d{5}$", str(value)):
        raise serializers.ValidationError("Invalid pincode.")
    return value
