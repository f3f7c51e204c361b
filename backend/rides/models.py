from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.conf import settings

from common.utils.pricing import compute_fare_breakdown, traffic_model_from_settings


class RideStatus(models.TextChoices):
    REQUESTED = 'requested', 'Requested'
    ACCEPTED = 'accepted', 'Accepted'
    IN_PROGRESS = 'in_progress', 'In Progress'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class RideCategory(models.TextChoices):
    ECONOMY = 'economy', 'Economy'
    COMFORT = 'comfort', 'Comfort'
    PREMIUM = 'premium', 'Premium'


class PaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    CARD = 'card', 'Card'


ACTIVE_STATUSES = [RideStatus.REQUESTED, RideStatus.ACCEPTED, RideStatus.IN_PROGRESS]
TERMINAL_STATUSES = [RideStatus.COMPLETED, RideStatus.CANCELLED]

# Inputs of the fare computation, and every field the computation writes back
PRICING_INPUT_FIELDS = {'category', 'distance_km', 'estimated_duration_min', 'rider_price_addon'}
FARE_FIELDS = [
    'distance_km',
    'estimated_duration_min',
    'rider_price_addon',
    'traffic_multiplier',
    'fare_breakdown',
    'fare',
]


class Ride(models.Model):
    """One trip, from request to completion or cancellation"""

    # Foreign keys
    rider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='rides'
    )

    driver = models.ForeignKey(
        'drivers.DriverProfile',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='rides'
    )

    # Pickup location
    pickup_address = models.CharField(max_length=255)
    pickup_latitude = models.FloatField()
    pickup_longitude = models.FloatField()

    # Dropoff location
    dropoff_address = models.CharField(max_length=255)
    dropoff_latitude = models.FloatField()
    dropoff_longitude = models.FloatField()

    category = models.CharField(max_length=20, choices=RideCategory.choices, default=RideCategory.ECONOMY)
    payment_method = models.CharField(max_length=10, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    status = models.CharField(max_length=20, choices=RideStatus.choices, default=RideStatus.REQUESTED)

    # Pricing inputs
    distance_km = models.FloatField(default=1)
    estimated_duration_min = models.PositiveIntegerField(default=5)
    rider_price_addon = models.PositiveIntegerField(default=0)

    # Derived from the pricing inputs on every save, never written directly
    traffic_multiplier = models.FloatField(default=1)
    fare_breakdown = models.JSONField(default=dict)
    fare = models.PositiveIntegerField(default=0)

    # Open request window
    request_expires_at = models.DateTimeField(null=True, blank=True)

    # Rider live location during an open or active ride
    rider_live_address = models.CharField(max_length=255, blank=True, default='')
    rider_live_latitude = models.FloatField(null=True, blank=True)
    rider_live_longitude = models.FloatField(null=True, blank=True)
    rider_live_updated_at = models.DateTimeField(null=True, blank=True)

    # Pickup verification
    pickup_otp = models.CharField(max_length=4, blank=True, default='')
    pickup_otp_generated_at = models.DateTimeField(null=True, blank=True)
    pickup_otp_verified_at = models.DateTimeField(null=True, blank=True)

    rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )

    # Timestamps
    requested_at = models.DateTimeField(auto_now_add=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    cancellation_reason = models.TextField(blank=True, default='')

    class Meta:
        db_table = 'rides'
        ordering = ['-requested_at', '-id']
        indexes = [
            models.Index(fields=['status', 'request_expires_at'], name='ride_status_expiry_idx'),
        ]

    def __str__(self):
        return f"Ride #{self.id} - {self.rider} - {self.status}"

    def save(self, *args, **kwargs):
        self.apply_fare()
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and PRICING_INPUT_FIELDS.intersection(update_fields):
            kwargs['update_fields'] = set(update_fields) | set(FARE_FIELDS)
        super().save(*args, **kwargs)

    # ---------------------- Fare binding ----------------------

    def compute_fare(self):
        return compute_fare_breakdown(
            self.category,
            self.distance_km,
            self.estimated_duration_min,
            self.rider_price_addon,
            traffic_model_from_settings(),
        )

    def apply_fare(self):
        """Recompute the fare from the current pricing inputs and store the normalized values."""
        breakdown = self.compute_fare()
        self.distance_km = breakdown['distance_km']
        self.estimated_duration_min = breakdown['duration_min']
        self.rider_price_addon = breakdown['rider_price_addon']
        self.traffic_multiplier = breakdown['traffic_multiplier']
        self.fare_breakdown = breakdown
        self.fare = breakdown['total']
        return breakdown

    def fare_values(self):
        """Fare fields as kwargs for a queryset ``update()``."""
        return {field: getattr(self, field) for field in FARE_FIELDS}

    # ---------------------- Locations ----------------------

    @property
    def pickup(self):
        return {'address': self.pickup_address, 'lat': self.pickup_latitude, 'lng': self.pickup_longitude}

    @property
    def dropoff(self):
        return {'address': self.dropoff_address, 'lat': self.dropoff_latitude, 'lng': self.dropoff_longitude}

    @property
    def rider_live_location(self):
        if self.rider_live_updated_at is None:
            return None
        return {
            'address': self.rider_live_address,
            'lat': self.rider_live_latitude,
            'lng': self.rider_live_longitude,
            'updated_at': self.rider_live_updated_at,
        }

    # ---------------------- State helpers ----------------------

    def is_open_request(self, now):
        return (
            self.status == RideStatus.REQUESTED
            and self.driver_id is None
            and self.request_expires_at is not None
            and self.request_expires_at > now
        )

    @property
    def requires_pickup_verification(self):
        return self.pickup_otp_generated_at is not None and self.pickup_otp_verified_at is None
