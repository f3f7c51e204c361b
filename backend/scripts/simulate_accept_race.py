"""
Fire concurrent accepts at one ride request and report who won.

Run against Postgres (POSTGRES_DB=...) for real row-level concurrency;
SQLite serializes writers, so every loser sees a claimed ride anyway.

    python scripts/simulate_accept_race.py --drivers 8
"""

import argparse
import os
import sys
import threading
from pathlib import Path

import django

BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ridehail.settings")
django.setup()

from django.db import connection  # noqa: E402
from django.utils import timezone  # noqa: E402
from accounts.models import User  # noqa: E402
from drivers.models import DriverProfile  # noqa: E402
from rides.models import Ride, RideStatus  # noqa: E402
from services.dispatch import accept_ride  # noqa: E402
from services.ride_management import RideServiceError, book_ride, check_active_ride  # noqa: E402

PICKUP = {"address": "Connaught Place", "lat": 28.6315, "lng": 77.2167}
DROPOFF = {"address": "India Gate", "lat": 28.6129, "lng": 77.2295}


def ensure_rider(username: str) -> User:
    user, created = User.objects.get_or_create(
        username=username,
        defaults={
            "role": User.ROLE_RIDER,
            "phone_number": "9000000000",
            "email": f"{username}@example.com",
        },
    )
    if created:
        user.set_password("demo1234")
        user.save()
    return user


def ensure_driver(index: int) -> DriverProfile:
    username = f"race_driver_{index}"
    user, created = User.objects.get_or_create(
        username=username,
        defaults={
            "role": User.ROLE_DRIVER,
            "phone_number": f"91000{index:05d}",
            "email": f"{username}@example.com",
        },
    )
    if created:
        user.set_password("demo1234")
        user.save()

    # A few hundred metres around the pickup
    profile, _ = DriverProfile.objects.update_or_create(
        user=user,
        defaults={
            "vehicle_make": "Maruti",
            "vehicle_model": "Dzire",
            "vehicle_year": 2021,
            "vehicle_plate": f"RC{index:04d}",
            "vehicle_color": "White",
            "vehicle_categories": ["economy"],
            "license_number": f"RACE-{index:05d}",
            "is_available": True,
            "current_latitude": PICKUP["lat"] + 0.001 * index,
            "current_longitude": PICKUP["lng"],
            "last_location_update": timezone.now(),
        },
    )
    return profile


def fresh_ride(rider: User) -> Ride:
    active = check_active_ride(rider)
    if active is not None:
        Ride.objects.filter(pk=active.pk).update(status=RideStatus.CANCELLED, cancellation_reason="Race demo reset")
    return book_ride(rider, PICKUP, DROPOFF, distance_km=2.6, duration_min=9).ride


def main():
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--drivers", type=int, default=5)
    args = parser.parse_args()

    rider = ensure_rider("race_demo_rider")
    drivers = [ensure_driver(i) for i in range(args.drivers)]
    ride = fresh_ride(rider)
    print(f"Booked ride #{ride.pk} (fare {ride.fare}); {len(drivers)} drivers accepting at once.")

    barrier = threading.Barrier(len(drivers))
    outcomes = {}

    def attempt(driver):
        try:
            barrier.wait()
            try:
                accept_ride(driver, ride.pk)
                outcomes[driver.user.username] = "WON"
            except RideServiceError as exc:
                outcomes[driver.user.username] = f"lost ({exc.error_code})"
        finally:
            connection.close()

    threads = [threading.Thread(target=attempt, args=(driver,)) for driver in drivers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    for username in sorted(outcomes):
        print(f"  {username}: {outcomes[username]}")

    ride.refresh_from_db()
    winners = [name for name, outcome in outcomes.items() if outcome == "WON"]
    print(f"Ride status: {ride.status}, assigned driver: {ride.driver_id}")
    print("Exactly one winner?", len(winners) == 1)


if __name__ == "__main__":
    main()
