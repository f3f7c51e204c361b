from unittest.mock import patch

from django.test import TestCase
from django.utils import timezone

from rides.models import RideStatus
from services.ride_management import (
	PickupOtpMismatchError,
	RideAccessDeniedError,
	RideAlreadyRatedError,
	RideStateConflictError,
	RideValidationError,
	advance_ride_status,
	rate_ride,
	verify_pickup_otp,
)
from services.ride_management.pickup import generate_pickup_otp
from services.ride_management.settlement import updated_rating

from .factories import make_driver, make_rider, make_ride


class PickupOtpTests(TestCase):
	def setUp(self):
		self.rider = make_rider()
		self.driver = make_driver(is_available=False)
		self.ride = make_ride(
			self.rider,
			driver=self.driver,
			status=RideStatus.ACCEPTED,
			pickup_otp='5307',
			pickup_otp_generated_at=timezone.now(),
		)

	def test_generated_codes_are_four_digits(self):
		for _ in range(200):
			code = generate_pickup_otp()
			self.assertRegex(code, r'^\d{4}$')
			self.assertGreaterEqual(int(code), 1000)

	def test_correct_code_verifies_and_unlocks_trip(self):
		ride = verify_pickup_otp(self.driver, self.ride.id, '5307')

		self.assertIsNotNone(ride.pickup_otp_verified_at)
		self.assertEqual(ride.pickup_otp, '')
		self.assertFalse(ride.requires_pickup_verification)

		started = advance_ride_status(self.driver, self.ride.id, RideStatus.IN_PROGRESS).ride
		self.assertEqual(started.status, RideStatus.IN_PROGRESS)

	def test_wrong_code_rejected(self):
		with self.assertRaises(PickupOtpMismatchError):
			verify_pickup_otp(self.driver, self.ride.id, '1111')

		self.ride.refresh_from_db()
		self.assertIsNone(self.ride.pickup_otp_verified_at)
		self.assertEqual(self.ride.pickup_otp, '5307')

	def test_malformed_code_rejected_before_lookup(self):
		for code in ('123', '12345', 'abcd', None):
			with self.assertRaises(RideValidationError):
				verify_pickup_otp(self.driver, 999999, code)

	def test_only_assigned_driver_can_verify(self):
		with self.assertRaises(RideAccessDeniedError):
			verify_pickup_otp(make_driver(), self.ride.id, '5307')

	def test_verify_only_while_accepted(self):
		self.ride.status = RideStatus.CANCELLED
		self.ride.save()

		with self.assertRaises(RideStateConflictError):
			verify_pickup_otp(self.driver, self.ride.id, '5307')

	def test_verifying_twice_is_harmless(self):
		first = verify_pickup_otp(self.driver, self.ride.id, '5307')
		second = verify_pickup_otp(self.driver, self.ride.id, '0000')

		self.assertEqual(first.pickup_otp_verified_at, second.pickup_otp_verified_at)


class RatingMathTests(TestCase):
	def test_running_average(self):
		self.assertEqual(updated_rating(4.0, 3, 5), (4.3, 4))
		self.assertEqual(updated_rating(0, 0, 4), (4.0, 1))


class RateRideTests(TestCase):
	def setUp(self):
		self.rider = make_rider()
		self.driver = make_driver(rating_average=4.0, rating_count=3)
		self.ride = make_ride(self.rider, driver=self.driver, status=RideStatus.COMPLETED, completed_at=timezone.now())

	def test_rating_updates_driver_aggregate(self):
		ride = rate_ride(self.rider, self.ride.id, 5)

		self.assertEqual(ride.rating, 5)
		self.driver.refresh_from_db()
		self.assertEqual(self.driver.rating_average, 4.3)
		self.assertEqual(self.driver.rating_count, 4)

	def test_ride_can_only_be_rated_once(self):
		rate_ride(self.rider, self.ride.id, 5)

		with self.assertRaises(RideAlreadyRatedError):
			rate_ride(self.rider, self.ride.id, 1)

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.rating_count, 4)

	def test_rating_range(self):
		for bad in (0, 6, 3.5, True, 'five'):
			with self.assertRaises(RideValidationError):
				rate_ride(self.rider, self.ride.id, bad)

	def test_only_completed_rides(self):
		self.ride.status = RideStatus.IN_PROGRESS
		self.ride.save()

		with self.assertRaises(RideStateConflictError):
			rate_ride(self.rider, self.ride.id, 4)

	def test_only_owner_rates(self):
		with self.assertRaises(RideAccessDeniedError):
			rate_ride(make_rider(), self.ride.id, 4)

	@patch('services.ride_management.settlement.logger')
	def test_rating_is_logged(self, mock_logger):
		rate_ride(self.rider, self.ride.id, 3)
		mock_logger.info.assert_called_once()
