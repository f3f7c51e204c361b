from rest_framework import serializers
from django.contrib.auth import authenticate
from django.db import IntegrityError, transaction

from .models import User
from drivers.models import DriverProfile, RIDE_CATEGORIES


class DuplicateAccountError(Exception):
    """Raised when a unique account field is taken; reported as HTTP 409."""

    def __init__(self, field):
        self.field = field
        super().__init__(f"{field} already in use")


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "role",
            "phone_number",
        ]
        read_only_fields = ["id", "role"]


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        user = authenticate(username=data["username"], password=data["password"])
        if not user:
            raise serializers.ValidationError("Invalid username or password")
        return user


class VehicleSerializer(serializers.Serializer):
    make = serializers.CharField(max_length=50)
    model = serializers.CharField(max_length=50)
    year = serializers.IntegerField(min_value=1980, max_value=2100)
    plate = serializers.CharField(max_length=20)
    color = serializers.CharField(max_length=30)
    categories = serializers.ListField(
        child=serializers.ChoiceField(choices=RIDE_CATEGORIES),
        required=False,
        allow_empty=False,
    )


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=6)
    role = serializers.ChoiceField(choices=User.ROLE_CHOICES, default=User.ROLE_RIDER)
    vehicle = VehicleSerializer(required=False)
    license_number = serializers.CharField(required=False, max_length=50)

    class Meta:
        model = User
        fields = ['username', 'password', 'email', 'role', 'phone_number', 'vehicle', 'license_number']
        # Uniqueness is checked in unique_conflict() so it can be reported as a conflict
        extra_kwargs = {
            'username': {'validators': []},
            'email': {'validators': []},
            'phone_number': {'required': False},
        }

    def validate(self, data):
        # If registering as driver, vehicle info and license are required
        if data['role'] == User.ROLE_DRIVER:
            errors = {}
            if not data.get('vehicle'):
                errors['vehicle'] = 'Vehicle details are required for drivers'
            if not (data.get('license_number') or '').strip():
                errors['license_number'] = 'License number is required for drivers'
            if errors:
                raise serializers.ValidationError(errors)
        return data

    def unique_conflict(self):
        """Name of the first unique field already taken, or None."""
        data = self.validated_data
        if User.objects.filter(username=data['username']).exists():
            return 'username'
        if User.objects.filter(email__iexact=data['email']).exists():
            return 'email'
        license_number = (data.get('license_number') or '').strip()
        if data['role'] == User.ROLE_DRIVER and DriverProfile.objects.filter(license_number=license_number).exists():
            return 'license_number'
        return None

    def create(self, validated_data):
        vehicle = validated_data.pop('vehicle', None)
        license_number = validated_data.pop('license_number', None)

        conflict = self.unique_conflict()
        if conflict:
            raise DuplicateAccountError(conflict)

        try:
            with transaction.atomic():
                user = User.objects.create_user(
                    username=validated_data['username'],
                    email=validated_data['email'],
                    password=validated_data['password'],
                    role=validated_data['role'],
                    phone_number=validated_data.get('phone_number', ''),
                )

                # Create driver profile if role is driver
                if user.role == User.ROLE_DRIVER:
                    DriverProfile.objects.create(
                        user=user,
                        vehicle_make=vehicle['make'],
                        vehicle_model=vehicle['model'],
                        vehicle_year=vehicle['year'],
                        vehicle_plate=vehicle['plate'],
                        vehicle_color=vehicle['color'],
                        vehicle_categories=list(dict.fromkeys(vehicle.get('categories') or ['economy'])),
                        license_number=license_number,
                    )
        except IntegrityError:
            # Lost a race with a concurrent registration
            raise DuplicateAccountError(self.unique_conflict() or 'account')

        return user
