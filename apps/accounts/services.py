import logging
from django.db import transaction

from .models import User

logger = logging.getLogger(__name__)


class AccountService:

    @staticmethod
    @transaction.atomic
    def register(email: str, password: str, full_name: str, role: str, **extra) -> User:
        user = User.objects.create_user(
            email=email,
            password=password,
            full_name=full_name,
            role=role,
            phone_number=extra.get("phone_number", ""),
            company_name=extra.get("company_name", ""),
        )
        logger.info("Registered %s account", role, extra={"user_id": user.id})
        return user
