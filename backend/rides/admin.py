"""Tells what to show in the Django admin interface for rides app"""

from django.contrib import admin
from .models import Ride, FARE_FIELDS


@admin.register(Ride)
class RideAdmin(admin.ModelAdmin):
    """Ride admin"""
    list_display = ['id', 'rider', 'driver', 'category', 'status', 'fare', 'requested_at', 'accepted_at', 'completed_at']
    list_filter = ['status', 'category', 'payment_method', 'requested_at']
    search_fields = ['rider__username', 'driver__user__username', 'pickup_address', 'dropoff_address']
    # Fare fields are derived on save; lifecycle fields only move through the services layer
    readonly_fields = FARE_FIELDS + [
        'status', 'driver', 'request_expires_at', 'pickup_otp', 'pickup_otp_generated_at',
        'pickup_otp_verified_at', 'rating', 'requested_at', 'accepted_at', 'started_at',
        'completed_at', 'cancelled_at',
    ]
    date_hierarchy = 'requested_at'
