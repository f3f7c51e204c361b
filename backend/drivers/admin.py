from django.contrib import admin
from drivers.models import DriverProfile


@admin.register(DriverProfile)
class DriverProfileAdmin(admin.ModelAdmin):
    """Admin panel for managing Driver Profiles"""

    list_display = [
        "user",
        "vehicle_plate",
        "license_number",
        "is_available",
        "rating_average",
        "total_rides",
        "earnings",
        "last_location_update",
    ]

    list_filter = [
        "is_available",
        "last_location_update",
    ]

    search_fields = [
        "user__username",
        "vehicle_plate",
        "license_number",
    ]

    # Maintained by ride settlement and rating
    readonly_fields = [
        "rating_average",
        "rating_count",
        "total_rides",
        "earnings",
        "last_location_update",
    ]

    ordering = ("user__username",)
