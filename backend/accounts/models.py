from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Extended user model with role selection"""
    ROLE_RIDER = 'rider'
    ROLE_DRIVER = 'driver'
    ROLE_CHOICES = [
        (ROLE_RIDER, 'Rider'),
        (ROLE_DRIVER, 'Driver'),
    ]

    # Role & basic info
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_RIDER)
    email = models.EmailField(unique=True)
    phone_number = models.CharField(max_length=15)

    class Meta:
        db_table = 'users'

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    @property
    def is_rider(self):
        return self.role == self.ROLE_RIDER

    @property
    def is_driver(self):
        return self.role == self.ROLE_DRIVER
