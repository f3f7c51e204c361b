from rest_framework import serializers
from drivers.models import DriverProfile, RIDE_CATEGORIES
from accounts.serializers import UserSerializer


class DriverProfileSerializer(serializers.ModelSerializer):
    """
    Full driver profile serializer
    """
    user = UserSerializer(read_only=True)

    class Meta:
        model = DriverProfile
        fields = [
            "id",
            "user",
            "vehicle_make",
            "vehicle_model",
            "vehicle_year",
            "vehicle_plate",
            "vehicle_color",
            "vehicle_categories",
            "license_number",
            "is_available",
            "current_address",
            "current_latitude",
            "current_longitude",
            "last_location_update",
            "rating_average",
            "rating_count",
            "total_rides",
            "earnings",
        ]
        read_only_fields = [
            "id",
            "license_number",
            "is_available",
            "current_address",
            "current_latitude",
            "current_longitude",
            "last_location_update",
            "rating_average",
            "rating_count",
            "total_rides",
            "earnings",
        ]

    def validate_vehicle_categories(self, value):
        return validate_categories(value)


class DriverBasicSerializer(serializers.ModelSerializer):
    """
    Lite version of driver info for ride details
    (sent to riders once a ride is accepted).
    """
    username = serializers.CharField(source="user.username", read_only=True)
    phone_number = serializers.CharField(source="user.phone_number", read_only=True)

    class Meta:
        model = DriverProfile
        fields = [
            "id",
            "username",
            "phone_number",
            "vehicle_make",
            "vehicle_model",
            "vehicle_plate",
            "vehicle_color",
            "rating_average",
            "current_latitude",
            "current_longitude",
        ]


def validate_categories(value):
    if not isinstance(value, list) or not value:
        raise serializers.ValidationError("Select at least one ride category")
    unknown = [category for category in value if category not in RIDE_CATEGORIES]
    if unknown:
        raise serializers.ValidationError(f"Unknown ride categories: {', '.join(map(str, unknown))}")
    # Keep first occurrence order, drop duplicates
    return list(dict.fromkeys(value))


class DriverAvailabilitySerializer(serializers.Serializer):
    """
    Serializer for updating driver availability.
    """
    is_available = serializers.BooleanField()


class LocationUpdateSerializer(serializers.Serializer):
    """
    Serializer for updating driver GPS location.
    """
    address = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)


class PickupOtpSerializer(serializers.Serializer):
    otp = serializers.RegexField(r"^\d{4}$", error_messages={"invalid": "Enter a valid 4-digit OTP"})


class RideStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=["in_progress", "completed"])
