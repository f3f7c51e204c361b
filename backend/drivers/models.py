from django.db import models
from django.utils import timezone
from django.conf import settings

User = settings.AUTH_USER_MODEL

RIDE_CATEGORIES = ['economy', 'comfort', 'premium']


def default_vehicle_categories():
    return ['economy']


class DriverProfile(models.Model):
    """Driver vehicle, availability, location and earnings"""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='driver_profile')

    # Vehicle details
    vehicle_make = models.CharField(max_length=50)
    vehicle_model = models.CharField(max_length=50)
    vehicle_year = models.PositiveIntegerField()
    vehicle_plate = models.CharField(max_length=20)
    vehicle_color = models.CharField(max_length=30)
    vehicle_categories = models.JSONField(default=default_vehicle_categories)

    license_number = models.CharField(max_length=50, unique=True)

    # Availability & location
    is_available = models.BooleanField(default=True)
    current_address = models.CharField(max_length=255, blank=True, default='')
    current_latitude = models.FloatField(null=True, blank=True)
    current_longitude = models.FloatField(null=True, blank=True)
    last_location_update = models.DateTimeField(default=timezone.now)

    # Running aggregates, updated by ride settlement
    rating_average = models.FloatField(default=0)
    rating_count = models.PositiveIntegerField(default=0)
    total_rides = models.PositiveIntegerField(default=0)
    earnings = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'driver_profiles'

    def __str__(self):
        return f"{self.user.username} - {self.vehicle_plate}"

    def save(self, *args, **kwargs):
        self.vehicle_plate = (self.vehicle_plate or '').strip().upper()
        self.license_number = (self.license_number or '').strip()
        if not self.vehicle_categories:
            self.vehicle_categories = default_vehicle_categories()
        super().save(*args, **kwargs)

    @property
    def current_location(self):
        return {
            'address': self.current_address,
            'lat': self.current_latitude,
            'lng': self.current_longitude,
        }

    def serves_category(self, category):
        return category in (self.vehicle_categories or default_vehicle_categories())
