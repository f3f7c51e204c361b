from django.urls import path
from .views import (
    DriverProfileView,
    DriverAvailabilityView,
    DriverLocationUpdateView,
    AvailableRidesView,
    AcceptRideView,
    VerifyPickupOtpView,
    RideStatusView,
    DriverCurrentRideView,
    DriverRideHistoryView,
)

app_name = "drivers"

urlpatterns = [
    path("profile/", DriverProfileView.as_view(), name="driver-profile"),
    path("availability/", DriverAvailabilityView.as_view(), name="driver-availability"),
    path("location/", DriverLocationUpdateView.as_view(), name="driver-location"),
    path("available-rides/", AvailableRidesView.as_view(), name="driver-available-rides"),
    path("rides/<int:ride_id>/accept/", AcceptRideView.as_view(), name="driver-accept-ride"),
    path("rides/<int:ride_id>/verify-pickup-otp/", VerifyPickupOtpView.as_view(), name="driver-verify-pickup-otp"),
    path("rides/<int:ride_id>/status/", RideStatusView.as_view(), name="driver-ride-status"),
    path("current-ride/", DriverCurrentRideView.as_view(), name="driver-current-ride"),
    path("my-rides/", DriverRideHistoryView.as_view(), name="driver-my-rides"),
]
