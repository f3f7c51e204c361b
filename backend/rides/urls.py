from django.urls import path
from . import views

app_name = 'rides'

urlpatterns = [
    # Rider APIs
    path('quote/', views.quote_fares, name='quote-fares'),
    path('book/', views.create_ride, name='book-ride'),
    path('my-rides/', views.my_rides, name='my-rides'),
    path('<int:ride_id>/', views.ride_detail, name='ride-detail'),
    path('<int:ride_id>/addon/', views.update_addon, name='update-addon'),
    path('<int:ride_id>/rider-location/', views.update_live_location, name='rider-location'),
    path('<int:ride_id>/cancel/', views.cancel_ride, name='cancel-ride'),
    path('<int:ride_id>/rate/', views.rate_completed_ride, name='rate-ride'),
]
