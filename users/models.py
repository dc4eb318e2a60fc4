"""User models for authentication and role checks.

The order pipeline only needs a verified identity plus a role: customers
own orders, admins confirm and fulfil them and receive new-order
notifications.
"""

from common.choices import UserRole
from django.contrib.auth.models import AbstractUser
from django.core.validators import RegexValidator
from django.db import models


class User(AbstractUser):
    """Custom user with unique email, phone and a shop role."""

    ROLE_CUSTOMER = UserRole.CUSTOMER
    ROLE_ADMIN = UserRole.ADMIN
    ROLE_CHOICES = UserRole.choices

    email = models.EmailField(unique=True)
    phone = models.CharField(
        max_length=16,
        blank=True,
        validators=[RegexValidator(r"^\+?[0-9]\d{1,14}$", message="Use digits only, optionally prefixed with +")],
    )
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_CUSTOMER, db_index=True)

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        if self.phone:
            self.phone = self.phone.strip()
        super().save(*args, **kwargs)

    @property
    def is_admin_role(self) -> bool:
        return self.role == self.ROLE_ADMIN

    @property
    def full_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.username
