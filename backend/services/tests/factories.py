"""Shared builders for service tests."""

from datetime import timedelta
from itertools import count

from django.utils import timezone

from accounts.models import User
from drivers.models import DriverProfile
from rides.models import Ride, RideStatus

_sequence = count(1)

# Connaught Place, New Delhi
PICKUP = {'address': 'Connaught Place', 'lat': 28.6315, 'lng': 77.2167}
# India Gate, about 2.4 km south
DROPOFF = {'address': 'India Gate', 'lat': 28.6129, 'lng': 77.2295}


def make_rider(**extra):
	n = next(_sequence)
	return User.objects.create_user(
		username=f'rider{n}',
		email=f'rider{n}@example.com',
		password='pass1234',
		role=User.ROLE_RIDER,
		phone_number=f'90000{n:05d}',
		**extra
	)


def make_driver(lat=PICKUP['lat'], lng=PICKUP['lng'], categories=None, **extra):
	n = next(_sequence)
	user = User.objects.create_user(
		username=f'driver{n}',
		email=f'driver{n}@example.com',
		password='driver1234',
		role=User.ROLE_DRIVER,
		phone_number=f'91000{n:05d}',
	)
	return DriverProfile.objects.create(
		user=user,
		vehicle_make='Maruti',
		vehicle_model='Dzire',
		vehicle_year=2021,
		vehicle_plate=f'dl01ab{n:04d}',
		vehicle_color='White',
		vehicle_categories=categories or ['economy'],
		license_number=f'DL-{n:08d}',
		current_latitude=lat,
		current_longitude=lng,
		**extra
	)


def make_ride(rider, pickup=PICKUP, dropoff=DROPOFF, expires_in=timedelta(minutes=5), **extra):
	fields = dict(
		rider=rider,
		pickup_address=pickup['address'],
		pickup_latitude=pickup['lat'],
		pickup_longitude=pickup['lng'],
		dropoff_address=dropoff['address'],
		dropoff_latitude=dropoff['lat'],
		dropoff_longitude=dropoff['lng'],
		distance_km=10,
		estimated_duration_min=25,
		status=RideStatus.REQUESTED,
		request_expires_at=timezone.now() + expires_in,
	)
	fields.update(extra)
	return Ride.objects.create(**fields)


def offset_point(point, km_north):
	"""Point roughly ``km_north`` kilometres north of ``point``."""
	return {
		'address': f"{point['address']} +{km_north}km",
		'lat': point['lat'] + km_north / 111.195,
		'lng': point['lng'],
	}
