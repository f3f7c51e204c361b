from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from rides.models import Ride, RideStatus
from services.ride_management import (
	ActiveRideExistsError,
	InvalidTransitionError,
	PickupNotVerifiedError,
	RideAccessDeniedError,
	RideNotAvailableError,
	RideNotFoundError,
	RideStateConflictError,
	RideValidationError,
	advance_ride_status,
	book_ride,
	cancel_ride_by_rider,
	get_ride_for_user,
	list_rider_rides,
	update_rider_addon,
	update_rider_live_location,
)
from services.ride_management.expiry import expiry_reason
from services.ride_management.ride_lifecycle import DEFAULT_RIDER_CANCEL_REASON

from .factories import DROPOFF, PICKUP, make_driver, make_rider, make_ride


class BookRideTests(TestCase):
	def setUp(self):
		self.rider = make_rider()

	def test_book_ride_prices_and_opens_request(self):
		before = timezone.now()
		result = book_ride(self.rider, PICKUP, DROPOFF, category='economy', distance_km=10, duration_min=25)
		ride = result.ride

		self.assertTrue(result.success)
		self.assertEqual(ride.status, RideStatus.REQUESTED)
		self.assertIsNone(ride.driver)
		self.assertEqual(ride.fare, 256)
		self.assertEqual(ride.fare_breakdown['total'], 256)
		self.assertEqual(ride.traffic_multiplier, 1.46)
		self.assertGreaterEqual(ride.request_expires_at, before + timedelta(minutes=5))

	def test_missing_distance_uses_straight_line(self):
		ride = book_ride(self.rider, PICKUP, DROPOFF).ride

		self.assertGreater(ride.distance_km, 2)
		self.assertLess(ride.distance_km, 3)

	def test_same_pickup_and_dropoff_rejected(self):
		with self.assertRaises(RideValidationError):
			book_ride(self.rider, PICKUP, dict(PICKUP, address='Same spot'))

	def test_missing_address_rejected(self):
		with self.assertRaises(RideValidationError):
			book_ride(self.rider, dict(PICKUP, address=' '), DROPOFF)

	def test_invalid_coordinates_rejected(self):
		with self.assertRaises(RideValidationError):
			book_ride(self.rider, dict(PICKUP, lat=120), DROPOFF)

	def test_unknown_category_rejected(self):
		with self.assertRaises(RideValidationError):
			book_ride(self.rider, PICKUP, DROPOFF, category='helicopter')

	def test_one_active_ride_per_rider(self):
		book_ride(self.rider, PICKUP, DROPOFF)
		with self.assertRaises(ActiveRideExistsError):
			book_ride(self.rider, PICKUP, DROPOFF)

	def test_expired_request_does_not_block_new_booking(self):
		make_ride(self.rider, expires_in=timedelta(seconds=-1))

		ride = book_ride(self.rider, PICKUP, DROPOFF).ride

		self.assertEqual(ride.status, RideStatus.REQUESTED)
		self.assertEqual(list_rider_rides(self.rider).filter(status=RideStatus.CANCELLED).count(), 1)


class RiderAddonTests(TestCase):
	def setUp(self):
		self.rider = make_rider()
		self.ride = make_ride(self.rider)

	def test_raising_addon_reprices(self):
		ride = update_rider_addon(self.rider, self.ride.id, 40)

		self.assertEqual(ride.rider_price_addon, 40)
		self.assertEqual(ride.fare, 256 + 40)
		self.assertEqual(ride.fare_breakdown['rider_price_addon'], 40)

	def test_addon_cannot_be_lowered(self):
		update_rider_addon(self.rider, self.ride.id, 80)
		with self.assertRaises(RideValidationError):
			update_rider_addon(self.rider, self.ride.id, 20)

	def test_negative_addon_rejected(self):
		with self.assertRaises(RideValidationError):
			update_rider_addon(self.rider, self.ride.id, -5)

	def test_addon_only_while_waiting(self):
		self.ride.driver = make_driver()
		self.ride.status = RideStatus.ACCEPTED
		self.ride.save()

		with self.assertRaises(RideNotAvailableError):
			update_rider_addon(self.rider, self.ride.id, 40)

	def test_expired_request_stays_expired_after_rejected_addon(self):
		Ride.objects.filter(pk=self.ride.pk).update(request_expires_at=timezone.now() - timedelta(seconds=1))

		with self.assertRaises(RideNotAvailableError):
			update_rider_addon(self.rider, self.ride.id, 40)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, RideStatus.CANCELLED)
		self.assertEqual(self.ride.rider_price_addon, 0)

	def test_other_rider_cannot_change_addon(self):
		with self.assertRaises(RideAccessDeniedError):
			update_rider_addon(make_rider(), self.ride.id, 40)

	def test_unknown_ride(self):
		with self.assertRaises(RideNotFoundError):
			update_rider_addon(self.rider, 999999, 40)


class RiderLiveLocationTests(TestCase):
	def setUp(self):
		self.rider = make_rider()
		self.ride = make_ride(self.rider)

	def test_location_is_stored(self):
		ride = update_rider_live_location(self.rider, self.ride.id, {'address': 'Gate 2', 'lat': 28.63, 'lng': 77.21})

		self.assertEqual(ride.rider_live_location['address'], 'Gate 2')
		self.assertEqual(ride.rider_live_latitude, 28.63)
		self.assertIsNotNone(ride.rider_live_updated_at)

	def test_invalid_location_rejected(self):
		with self.assertRaises(RideValidationError):
			update_rider_live_location(self.rider, self.ride.id, {'lat': None, 'lng': 77.21})

	def test_finished_ride_rejects_location(self):
		self.ride.status = RideStatus.CANCELLED
		self.ride.save()

		with self.assertRaises(RideStateConflictError):
			update_rider_live_location(self.rider, self.ride.id, {'lat': 28.63, 'lng': 77.21})

	def test_expired_request_rejects_location(self):
		Ride.objects.filter(pk=self.ride.pk).update(request_expires_at=timezone.now() - timedelta(seconds=1))

		with self.assertRaises(RideStateConflictError):
			update_rider_live_location(self.rider, self.ride.id, {'lat': 28.63, 'lng': 77.21})

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, RideStatus.CANCELLED)
		self.assertIsNone(self.ride.rider_live_updated_at)


class CancelRideTests(TestCase):
	def setUp(self):
		self.rider = make_rider()
		self.driver = make_driver(is_available=False)

	def test_cancel_open_request(self):
		ride = make_ride(self.rider)

		result = cancel_ride_by_rider(self.rider, ride.id)

		self.assertEqual(result.ride.status, RideStatus.CANCELLED)
		self.assertEqual(result.ride.cancellation_reason, DEFAULT_RIDER_CANCEL_REASON)
		self.assertFalse(result.extra['was_assigned'])

	def test_cancel_accepted_ride_frees_driver(self):
		ride = make_ride(self.rider, driver=self.driver, status=RideStatus.ACCEPTED)

		result = cancel_ride_by_rider(self.rider, ride.id, 'Changed plans')

		self.assertTrue(result.extra['was_assigned'])
		self.assertEqual(result.ride.cancellation_reason, 'Changed plans')
		self.driver.refresh_from_db()
		self.assertTrue(self.driver.is_available)

	def test_cannot_cancel_trip_in_progress(self):
		ride = make_ride(self.rider, driver=self.driver, status=RideStatus.IN_PROGRESS)

		with self.assertRaises(InvalidTransitionError):
			cancel_ride_by_rider(self.rider, ride.id)

	def test_cannot_cancel_twice(self):
		ride = make_ride(self.rider)
		cancel_ride_by_rider(self.rider, ride.id)

		with self.assertRaises(InvalidTransitionError):
			cancel_ride_by_rider(self.rider, ride.id)

	def test_expired_request_is_swept_before_cancel(self):
		ride = make_ride(self.rider)
		Ride.objects.filter(pk=ride.pk).update(request_expires_at=timezone.now() - timedelta(seconds=1))

		with self.assertRaises(InvalidTransitionError):
			cancel_ride_by_rider(self.rider, ride.id, 'Changed plans')

		ride.refresh_from_db()
		self.assertEqual(ride.status, RideStatus.CANCELLED)
		self.assertEqual(ride.cancellation_reason, expiry_reason())

	def test_only_owner_can_cancel(self):
		ride = make_ride(self.rider)

		with self.assertRaises(RideAccessDeniedError):
			cancel_ride_by_rider(make_rider(), ride.id)


class AdvanceRideStatusTests(TestCase):
	def setUp(self):
		self.rider = make_rider()
		self.driver = make_driver(is_available=False)
		self.ride = make_ride(
			self.rider,
			driver=self.driver,
			status=RideStatus.ACCEPTED,
			pickup_otp='4821',
			pickup_otp_generated_at=timezone.now(),
		)

	def _verify(self):
		self.ride.pickup_otp = ''
		self.ride.pickup_otp_verified_at = timezone.now()
		self.ride.save()

	def test_cannot_start_before_pickup_verified(self):
		with self.assertRaises(PickupNotVerifiedError):
			advance_ride_status(self.driver, self.ride.id, RideStatus.IN_PROGRESS)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, RideStatus.ACCEPTED)

	def test_full_trip_settles_driver(self):
		self._verify()

		started = advance_ride_status(self.driver, self.ride.id, RideStatus.IN_PROGRESS).ride
		self.assertEqual(started.status, RideStatus.IN_PROGRESS)
		self.assertIsNotNone(started.started_at)

		completed = advance_ride_status(self.driver, self.ride.id, RideStatus.COMPLETED).ride
		self.assertEqual(completed.status, RideStatus.COMPLETED)
		self.assertIsNotNone(completed.completed_at)

		self.driver.refresh_from_db()
		self.assertTrue(self.driver.is_available)
		self.assertEqual(self.driver.total_rides, 1)
		self.assertEqual(self.driver.earnings, completed.fare)

	def test_cannot_skip_to_completed(self):
		self._verify()
		with self.assertRaises(InvalidTransitionError):
			advance_ride_status(self.driver, self.ride.id, RideStatus.COMPLETED)

	def test_only_assigned_driver(self):
		with self.assertRaises(RideAccessDeniedError):
			advance_ride_status(make_driver(), self.ride.id, RideStatus.IN_PROGRESS)

	def test_driver_cannot_cancel_through_status(self):
		with self.assertRaises(RideValidationError):
			advance_ride_status(self.driver, self.ride.id, RideStatus.CANCELLED)


class RideVisibilityTests(TestCase):
	def setUp(self):
		self.rider = make_rider()
		self.ride = make_ride(self.rider)

	def test_owner_sees_ride(self):
		self.assertEqual(get_ride_for_user(self.rider, self.ride.id), self.ride)

	def test_any_driver_sees_open_request(self):
		driver = make_driver()
		self.assertEqual(get_ride_for_user(driver.user, self.ride.id), self.ride)

	def test_other_driver_cannot_see_assigned_ride(self):
		assigned = make_driver()
		self.ride.driver = assigned
		self.ride.status = RideStatus.ACCEPTED
		self.ride.save()

		self.assertEqual(get_ride_for_user(assigned.user, self.ride.id), self.ride)
		with self.assertRaises(RideAccessDeniedError):
			get_ride_for_user(make_driver().user, self.ride.id)

	def test_other_rider_cannot_see_ride(self):
		with self.assertRaises(RideAccessDeniedError):
			get_ride_for_user(make_rider(), self.ride.id)

	def test_history_is_newest_first(self):
		self.ride.status = RideStatus.COMPLETED
		self.ride.save()
		newer = make_ride(self.rider)

		self.assertEqual(list(list_rider_rides(self.rider)), [newer, self.ride])
