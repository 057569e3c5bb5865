from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction
from apps.utils.exceptions import BusinessLogicException

from .models import Address

User = get_user_model()


class AddressNotFound(BusinessLogicException):
    code = "ADDRESS_NOT_FOUND"
    status_code = 404
    default_message = "Address not found."


class CustomerService:

    @staticmethod
    def get_address(user, address_id) -> Address:
        try:
            return Address.objects.get(id=address_id, user=user)
        except (Address.DoesNotExist, ValueError, ValidationError):
            raise AddressNotFound()

    @staticmethod
    @transaction.atomic
    def create_address(user, **data) -> Address:
        # 1. Lock the owner row to serialize default-address handling for this user
        User.objects.select_for_update().filter(pk=user.pk).first()

        is_default = data.pop("is_default", False)

        # 2. First address is ALWAYS default
        if not Address.objects.filter(user=user).exists():
            is_default = True

        # 3. If new one is default, unset others
        if is_default:
            Address.objects.filter(user=user, is_default=True).update(is_default=False)

        return Address.objects.create(user=user, is_default=is_default, **data)

    @staticmethod
    @transaction.atomic
    def update_address(user, address_id, data: dict) -> Address:
        address = CustomerService.get_address(user, address_id)

        if data.pop("is_default", False) and not address.is_default:
            Address.objects.filter(user=user, is_default=True).update(is_default=False)
            address.is_default = True

        for field, value in data.items():
            setattr(address, field, value)
        address.save()
        return address

    @staticmethod
    @transaction.atomic
    def set_default_address(user, address_id) -> Address:
        User.objects.select_for_update().filter(pk=user.pk).first()
        target_address = CustomerService.get_address(user, address_id)

        if target_address.is_default:
            return target_address

        # Unset previous default
        Address.objects.filter(user=user, is_default=True).update(is_default=False)

        target_address.is_default = True
        target_address.save(update_fields=["is_default", "updated_at"])

        return target_address

    @staticmethod
    @transaction.atomic
    def delete_address(user, address_id) -> None:
        address = CustomerService.get_address(user, address_id)
        was_default = address.is_default
        address.delete()

        # Promote the most recent remaining address
        if was_default:
            successor = Address.objects.filter(user=user).order_by("-created_at").first()
            if successor:
                successor.is_default = True
                successor.save(update_fields=["is_default", "updated_at"])
