from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import User
from drivers.models import DriverProfile


class DriverProfileInline(admin.StackedInline):
    """Vehicle and licence shown on the driver's account page"""
    model = DriverProfile
    can_delete = False
    extra = 0
    fields = [
        ("vehicle_make", "vehicle_model", "vehicle_year"),
        ("vehicle_plate", "vehicle_color"),
        "vehicle_categories",
        "license_number",
        ("rating_average", "rating_count", "total_rides", "earnings"),
    ]
    readonly_fields = ["rating_average", "rating_count", "total_rides", "earnings"]


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Riders and drivers; drivers carry their vehicle inline"""

    list_display = ["username", "email", "role", "phone_number", "ride_count", "is_active"]
    list_filter = ["role", "is_active", "is_staff"]
    search_fields = ["username", "email", "phone_number"]
    ordering = ("-date_joined",)

    fieldsets = BaseUserAdmin.fieldsets + (
        ("Ride Account", {"fields": ("role", "phone_number")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Ride Account", {"fields": ("email", "role", "phone_number")}),
    )

    def get_inlines(self, request, obj):
        if obj is not None and obj.is_driver:
            return [DriverProfileInline]
        return []

    @admin.display(description="Rides booked")
    def ride_count(self, obj):
        return obj.rides.count()
