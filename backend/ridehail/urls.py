from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Authentication endpoints (at /api/auth/)
    path('api/auth/', include('accounts.urls')),  # register, login, refresh, me

    # Driver APIs (profile, availability, location, dispatch, trip progress)
    path('api/driver/', include('drivers.urls')),

    # Rider ride endpoints (at /api/rides/)
    path('api/rides/', include('rides.urls')),
]
