from django.contrib.auth.models import AbstractUser
from django.db import models


class UserRole(models.TextChoices):
    ADMIN = "ADMIN", "Admin"
    VENDOR = "VENDOR", "Vendor"
    CUSTOMER = "CUSTOMER", "Customer"


class User(AbstractUser):
    role = models.CharField(max_length=20, choices=UserRole.choices, default=UserRole.CUSTOMER)
    phone = models.CharField(max_length=30, blank=True)
    company_name = models.CharField(max_length=120, blank=True)

    @property
    def display_name(self):
        return self.company_name or self.get_full_name() or self.username
