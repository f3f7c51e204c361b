import threading
from datetime import timedelta
from unittest import skipIf
from unittest.mock import patch

from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings

from drivers.models import DriverProfile
from rides.models import Ride, RideStatus
from services.dispatch import accept_ride, claim_ride, dispatch_radius_km, eligible_rides_for_driver
from services.dispatch import claim as claim_module
from services.ride_management.exceptions import (
	CategoryNotSupportedError,
	DriverNotAvailableError,
	OutsideDispatchRadiusError,
	RideAlreadyClaimedError,
	RideNotAvailableError,
	RideNotFoundError,
	RideServiceError,
)

from .factories import PICKUP, make_driver, make_rider, make_ride, offset_point


class DispatchRadiusTests(TestCase):
	def test_radius_grows_with_addon(self):
		self.assertEqual(dispatch_radius_km(0), 8)
		self.assertEqual(dispatch_radius_km(79), 8)
		self.assertEqual(dispatch_radius_km(80), 9)
		self.assertEqual(dispatch_radius_km(160), 10)

	def test_radius_is_capped(self):
		self.assertEqual(dispatch_radius_km(10000), 20)

	@override_settings(DISPATCH_BASE_RADIUS_KM=3, DISPATCH_ADDON_KM_STEP=50, DISPATCH_MAX_RADIUS_KM=5)
	def test_radius_follows_settings(self):
		self.assertEqual(dispatch_radius_km(100), 5)
		self.assertEqual(dispatch_radius_km(0), 3)


class EligibleRidesTests(TestCase):
	def setUp(self):
		self.driver = make_driver(categories=['economy', 'comfort'])

	def test_sorted_by_distance_then_fare(self):
		far = make_ride(make_rider(), pickup=offset_point(PICKUP, 5))
		near_cheap = make_ride(make_rider(), pickup=offset_point(PICKUP, 1))
		near_pricey = make_ride(make_rider(), pickup=offset_point(PICKUP, 1), rider_price_addon=50)

		rides = [c.ride for c in eligible_rides_for_driver(self.driver)]

		self.assertEqual(rides, [near_pricey, near_cheap, far])

	def test_candidates_carry_distance_and_radius(self):
		make_ride(make_rider(), pickup=offset_point(PICKUP, 2))

		candidate = eligible_rides_for_driver(self.driver)[0]

		self.assertAlmostEqual(candidate.pickup_distance_km, 2, places=2)
		self.assertEqual(candidate.dispatch_radius_km, 8)

	def test_outside_radius_is_hidden_until_addon_grows(self):
		ride = make_ride(make_rider(), pickup=offset_point(PICKUP, 9))
		self.assertEqual(eligible_rides_for_driver(self.driver), [])

		ride.rider_price_addon = 160
		ride.save()
		self.assertEqual([c.ride for c in eligible_rides_for_driver(self.driver)], [ride])

	def test_category_filter(self):
		make_ride(make_rider(), category='premium')
		comfort = make_ride(make_rider(), category='comfort')

		self.assertEqual([c.ride for c in eligible_rides_for_driver(self.driver)], [comfort])

	def test_only_open_requests(self):
		make_ride(make_rider(), expires_in=timedelta(seconds=-1))
		make_ride(make_rider(), driver=make_driver(), status=RideStatus.ACCEPTED)
		make_ride(make_rider(), status=RideStatus.CANCELLED)
		open_ride = make_ride(make_rider())

		self.assertEqual([c.ride for c in eligible_rides_for_driver(self.driver)], [open_ride])

	def test_driver_without_location_sees_everything_last(self):
		self.driver.current_latitude = None
		self.driver.current_longitude = None
		self.driver.save()
		far = make_ride(make_rider(), pickup=offset_point(PICKUP, 50))
		cheap = make_ride(make_rider())
		pricey = make_ride(make_rider(), rider_price_addon=30)

		candidates = eligible_rides_for_driver(self.driver)

		self.assertEqual({c.ride for c in candidates}, {far, cheap, pricey})
		self.assertTrue(all(c.pickup_distance_km is None for c in candidates))
		# Unmeasurable distance ties; fare breaks the tie
		self.assertEqual(candidates[0].ride, pricey)

	def test_limit(self):
		for km in (1, 2, 3):
			make_ride(make_rider(), pickup=offset_point(PICKUP, km))

		self.assertEqual(len(eligible_rides_for_driver(self.driver, limit=2)), 2)
		with override_settings(DISPATCH_AVAILABLE_RIDES_LIMIT=1):
			self.assertEqual(len(eligible_rides_for_driver(self.driver)), 1)


class AcceptRideTests(TestCase):
	def setUp(self):
		self.rider = make_rider()
		self.ride = make_ride(self.rider, pickup=offset_point(PICKUP, 1))
		self.driver = make_driver()

	def test_accept_assigns_driver_and_issues_code(self):
		result = accept_ride(self.driver, self.ride.id)
		ride = result.ride

		self.assertEqual(ride.status, RideStatus.ACCEPTED)
		self.assertEqual(ride.driver_id, self.driver.pk)
		self.assertIsNotNone(ride.accepted_at)
		self.assertRegex(ride.pickup_otp, r'^\d{4}$')
		self.assertIsNotNone(ride.pickup_otp_generated_at)
		self.assertIsNone(ride.pickup_otp_verified_at)

		self.driver.refresh_from_db()
		self.assertFalse(self.driver.is_available)

	def test_unavailable_driver_cannot_accept(self):
		DriverProfile.objects.filter(pk=self.driver.pk).update(is_available=False)

		with self.assertRaises(DriverNotAvailableError):
			accept_ride(self.driver, self.ride.id)

	def test_driver_with_active_ride_cannot_accept(self):
		make_ride(make_rider(), driver=self.driver, status=RideStatus.IN_PROGRESS)

		with self.assertRaises(DriverNotAvailableError):
			accept_ride(self.driver, self.ride.id)

	def test_unknown_ride(self):
		with self.assertRaises(RideNotFoundError):
			accept_ride(self.driver, 424242)

	def test_expired_request_cannot_be_accepted(self):
		Ride.objects.filter(pk=self.ride.pk).update(request_expires_at=self.ride.requested_at - timedelta(minutes=1))

		with self.assertRaises(RideNotAvailableError):
			accept_ride(self.driver, self.ride.id)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, RideStatus.CANCELLED)

	def test_category_is_rechecked(self):
		premium = make_ride(make_rider(), category='premium')

		with self.assertRaises(CategoryNotSupportedError):
			accept_ride(self.driver, premium.id)

	def test_radius_is_rechecked(self):
		distant = make_ride(make_rider(), pickup=offset_point(PICKUP, 12))

		with self.assertRaises(OutsideDispatchRadiusError) as ctx:
			accept_ride(self.driver, distant.id)

		self.assertEqual(ctx.exception.details['dispatch_radius_km'], 8)

	def test_second_driver_is_told_ride_was_claimed(self):
		accept_ride(self.driver, self.ride.id)

		with self.assertRaises(RideAlreadyClaimedError) as ctx:
			accept_ride(make_driver(), self.ride.id)

		self.assertEqual(str(ctx.exception), 'Ride claimed by another driver')


class ClaimRaceTests(TestCase):
	"""Two drivers read the same open request; only one claim may land."""

	def setUp(self):
		self.ride = make_ride(make_rider())
		self.driver_a = make_driver()
		self.driver_b = make_driver()

	def test_claim_is_compare_and_set(self):
		snapshot = Ride.objects.get(pk=self.ride.pk)

		self.assertEqual(claim_ride(self.driver_a, snapshot), 1)
		self.assertEqual(claim_ride(self.driver_b, snapshot), 0)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.driver_id, self.driver_a.pk)

	def test_loser_with_stale_read_gets_conflict(self):
		# Driver B loaded the ride before driver A's claim committed
		stale = Ride.objects.get(pk=self.ride.pk)
		accept_ride(self.driver_a, self.ride.id)

		with patch.object(claim_module, 'load_ride', return_value=stale):
			with self.assertRaises(RideAlreadyClaimedError):
				accept_ride(self.driver_b, self.ride.id)

		self.ride.refresh_from_db()
		self.driver_b.refresh_from_db()
		self.assertEqual(self.ride.driver_id, self.driver_a.pk)
		self.assertTrue(self.driver_b.is_available)

	def test_claim_rolls_back_when_driver_goes_offline(self):
		real_claim = claim_module.claim_ride

		def claim_then_go_offline(driver, ride, now=None):
			updated = real_claim(driver, ride, now)
			DriverProfile.objects.filter(pk=driver.pk).update(is_available=False)
			return updated

		with patch.object(claim_module, 'claim_ride', side_effect=claim_then_go_offline):
			with self.assertRaises(DriverNotAvailableError):
				accept_ride(self.driver_a, self.ride.id)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, RideStatus.REQUESTED)
		self.assertIsNone(self.ride.driver_id)
		self.assertEqual(self.ride.pickup_otp, '')


@skipIf(connection.vendor == 'sqlite', 'SQLite serializes writers; run scripts/simulate_accept_race.py against Postgres')
class ConcurrentAcceptTests(TransactionTestCase):
	"""Drivers accept the same request from separate threads and connections."""

	driver_count = 4

	def test_exactly_one_accept_wins(self):
		ride = make_ride(make_rider())
		drivers = [make_driver() for _ in range(self.driver_count)]
		barrier = threading.Barrier(len(drivers))
		winners = []
		losers = []

		def attempt(driver):
			try:
				barrier.wait()
				result = accept_ride(driver, ride.id)
				winners.append((driver.pk, result))
			except RideServiceError as exc:
				losers.append((driver.pk, exc.error_code))
			finally:
				connection.close()

		threads = [threading.Thread(target=attempt, args=(driver,)) for driver in drivers]
		for thread in threads:
			thread.start()
		for thread in threads:
			thread.join()

		self.assertEqual(len(winners), 1)
		self.assertEqual(len(losers), len(drivers) - 1)
		for _, error_code in losers:
			self.assertIn(error_code, ('ride_already_claimed', 'ride_not_available'))

		winner_pk = winners[0][0]
		ride.refresh_from_db()
		self.assertEqual(ride.status, RideStatus.ACCEPTED)
		self.assertEqual(ride.driver_id, winner_pk)
		self.assertEqual(DriverProfile.objects.filter(is_available=False).count(), 1)
		self.assertFalse(DriverProfile.objects.get(pk=winner_pk).is_available)
