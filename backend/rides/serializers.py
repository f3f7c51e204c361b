from rest_framework import serializers
from django.contrib.auth import get_user_model

from drivers.serializers import DriverBasicSerializer
from .models import Ride, RideCategory, PaymentMethod

User = get_user_model()


class RiderBasicSerializer(serializers.ModelSerializer):
    """Basic rider representation used inside ride responses."""
    class Meta:
        model = User
        fields = ['id', 'username', 'phone_number']


class RideSerializer(serializers.ModelSerializer):
    """
    Ride as seen by its rider.

    Includes the pickup code so the rider can read it out to the driver.
    """
    rider = RiderBasicSerializer(read_only=True)
    driver = DriverBasicSerializer(read_only=True)
    pickup = serializers.DictField(read_only=True)
    dropoff = serializers.DictField(read_only=True)
    rider_live_location = serializers.SerializerMethodField()
    pickup_otp_verified = serializers.SerializerMethodField()

    class Meta:
        model = Ride
        fields = [
            'id', 'rider', 'driver', 'pickup', 'dropoff', 'category', 'payment_method',
            'status', 'distance_km', 'estimated_duration_min', 'rider_price_addon',
            'traffic_multiplier', 'fare_breakdown', 'fare', 'request_expires_at',
            'rider_live_location', 'pickup_otp', 'pickup_otp_verified', 'rating',
            'requested_at', 'accepted_at', 'started_at', 'completed_at', 'cancelled_at',
            'cancellation_reason',
        ]
        read_only_fields = fields

    def get_rider_live_location(self, obj):
        location = obj.rider_live_location
        if location is None:
            return None
        return {**location, 'updated_at': serializers.DateTimeField().to_representation(location['updated_at'])}

    def get_pickup_otp_verified(self, obj):
        return obj.pickup_otp_verified_at is not None


class DriverRideSerializer(RideSerializer):
    """Ride as seen by drivers: never carries the pickup code."""

    class Meta(RideSerializer.Meta):
        fields = [field for field in RideSerializer.Meta.fields if field != 'pickup_otp']
        read_only_fields = fields


# ---------------------- Input serializers ----------------------

class LocationInputSerializer(serializers.Serializer):
    """A resolved place: address plus coordinates."""
    address = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)


class FareQuoteSerializer(serializers.Serializer):
    """Inputs for pre-booking fare quotes across every category"""
    distance_km = serializers.FloatField(required=False, allow_null=True)
    duration_min = serializers.FloatField(required=False, allow_null=True)
    rider_price_addon = serializers.IntegerField(required=False, min_value=0, default=0)
    pickup = LocationInputSerializer(required=False)
    dropoff = LocationInputSerializer(required=False)

    def validate(self, data):
        if data.get('duration_min') is None:
            raise serializers.ValidationError({'duration_min': 'Estimated duration is required'})
        # Without a route distance, both endpoints are needed for the straight-line fallback
        if data.get('distance_km') is None and not (data.get('pickup') and data.get('dropoff')):
            raise serializers.ValidationError({'distance_km': 'Distance or pickup and dropoff are required'})
        return data


class RideBookSerializer(serializers.Serializer):
    """Serializer for booking a ride"""
    pickup = LocationInputSerializer()
    dropoff = LocationInputSerializer()
    category = serializers.ChoiceField(choices=RideCategory.choices, default=RideCategory.ECONOMY)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    distance_km = serializers.FloatField(required=False, allow_null=True)
    duration_min = serializers.FloatField(required=False, allow_null=True)
    rider_price_addon = serializers.IntegerField(required=False, min_value=0, default=0)

    def validate(self, data):
        for key in ('pickup', 'dropoff'):
            if not data[key].get('address', '').strip():
                raise serializers.ValidationError({key: 'Address is required'})
        return data


class RiderAddonSerializer(serializers.Serializer):
    rider_price_addon = serializers.IntegerField(min_value=0)


class RideCancelSerializer(serializers.Serializer):
    """Serializer for ride cancellation"""
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class RideRatingSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
