from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from common.utils import great_circle_distance_km, round_half_up
from rides.models import Ride, RideStatus
from services.tests.factories import DROPOFF, PICKUP, make_driver, make_ride, make_rider
from .views import (
	cancel_ride,
	create_ride,
	my_rides,
	quote_fares,
	rate_completed_ride,
	ride_detail,
	update_addon,
	update_live_location,
)


class RideApiTestCase(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.rider = make_rider()

	def call(self, view, method, user, data=None, **kwargs):
		request = getattr(self.factory, method)('/api/rides/', data or {}, format='json')
		force_authenticate(request, user=user)
		return view(request, **kwargs)


class FareQuoteApiTests(RideApiTestCase):
	def test_quotes_every_category(self):
		response = self.call(quote_fares, 'post', self.rider, {'distance_km': 10, 'duration_min': 25})

		self.assertEqual(response.status_code, 200)
		totals = {quote['category']: quote['total'] for quote in response.data['quotes']}
		self.assertEqual(set(totals), {'economy', 'comfort', 'premium'})
		self.assertEqual(totals['economy'], 256)
		self.assertLess(totals['economy'], totals['comfort'])
		self.assertLess(totals['comfort'], totals['premium'])

	def test_addon_is_added_to_every_quote(self):
		base = self.call(quote_fares, 'post', self.rider, {'distance_km': 10, 'duration_min': 25})
		raised = self.call(quote_fares, 'post', self.rider, {'distance_km': 10, 'duration_min': 25, 'rider_price_addon': 40})

		for before, after in zip(base.data['quotes'], raised.data['quotes']):
			self.assertEqual(after['total'], before['total'] + 40)

	def test_empty_quote_request_rejected(self):
		response = self.call(quote_fares, 'post', self.rider, {})

		self.assertEqual(response.status_code, 400)
		self.assertIn('duration_min', response.data)

	def test_quote_needs_duration(self):
		response = self.call(quote_fares, 'post', self.rider, {'distance_km': 10})

		self.assertEqual(response.status_code, 400)
		self.assertIn('duration_min', response.data)

	def test_quote_needs_distance_or_both_endpoints(self):
		response = self.call(quote_fares, 'post', self.rider, {'duration_min': 25, 'pickup': PICKUP})

		self.assertEqual(response.status_code, 400)
		self.assertIn('distance_km', response.data)

	def test_quote_falls_back_to_straight_line_distance(self):
		response = self.call(quote_fares, 'post', self.rider, {'duration_min': 9, 'pickup': PICKUP, 'dropoff': DROPOFF})

		self.assertEqual(response.status_code, 200)
		expected = round_half_up(great_circle_distance_km(PICKUP, DROPOFF), 2)
		for quote in response.data['quotes']:
			self.assertEqual(quote['distance_km'], expected)

	def test_drivers_cannot_quote(self):
		driver = make_driver()
		response = self.call(quote_fares, 'post', driver.user, {'distance_km': 10})

		self.assertEqual(response.status_code, 403)


class BookRideApiTests(RideApiTestCase):
	def booking(self, **extra):
		data = {
			'pickup': PICKUP,
			'dropoff': DROPOFF,
			'category': 'economy',
			'payment_method': 'cash',
			'distance_km': 10,
			'duration_min': 25,
		}
		data.update(extra)
		return data

	def test_book_ride(self):
		response = self.call(create_ride, 'post', self.rider, self.booking())

		self.assertEqual(response.status_code, 201)
		self.assertTrue(response.data['success'])
		ride = response.data['ride']
		self.assertEqual(ride['status'], RideStatus.REQUESTED)
		self.assertEqual(ride['fare'], 256)
		self.assertIsNone(ride['driver'])
		self.assertEqual(ride['pickup']['address'], 'Connaught Place')
		self.assertIsNotNone(ride['request_expires_at'])

	def test_second_active_booking_conflicts(self):
		self.call(create_ride, 'post', self.rider, self.booking())
		response = self.call(create_ride, 'post', self.rider, self.booking())

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'active_ride_exists')
		self.assertEqual(Ride.objects.filter(rider=self.rider).count(), 1)

	def test_missing_address_rejected(self):
		response = self.call(create_ride, 'post', self.rider, self.booking(pickup={'lat': 28.6, 'lng': 77.2}))

		self.assertEqual(response.status_code, 400)
		self.assertFalse(Ride.objects.exists())

	def test_identical_endpoints_rejected(self):
		response = self.call(create_ride, 'post', self.rider, self.booking(dropoff=PICKUP))

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'validation_error')

	def test_unknown_category_rejected(self):
		response = self.call(create_ride, 'post', self.rider, self.booking(category='luxury'))

		self.assertEqual(response.status_code, 400)


class RideDetailApiTests(RideApiTestCase):
	def setUp(self):
		super().setUp()
		self.driver = make_driver(is_available=False)
		self.ride = make_ride(
			self.rider,
			driver=self.driver,
			status=RideStatus.ACCEPTED,
			pickup_otp='4821',
			pickup_otp_generated_at=timezone.now(),
		)

	def test_rider_sees_pickup_code(self):
		response = self.call(ride_detail, 'get', self.rider, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['pickup_otp'], '4821')
		self.assertFalse(response.data['ride']['pickup_otp_verified'])

	def test_assigned_driver_never_sees_pickup_code(self):
		response = self.call(ride_detail, 'get', self.driver.user, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 200)
		self.assertNotIn('pickup_otp', response.data['ride'])

	def test_strangers_are_refused(self):
		response = self.call(ride_detail, 'get', make_rider(), ride_id=self.ride.id)
		self.assertEqual(response.status_code, 403)

		response = self.call(ride_detail, 'get', make_driver().user, ride_id=self.ride.id)
		self.assertEqual(response.status_code, 403)

	def test_unknown_ride(self):
		response = self.call(ride_detail, 'get', self.rider, ride_id=999999)
		self.assertEqual(response.status_code, 404)

	def test_history_lists_own_rides(self):
		make_ride(make_rider())
		response = self.call(my_rides, 'get', self.rider)

		self.assertEqual(response.data['count'], 1)
		self.assertEqual(response.data['rides'][0]['id'], self.ride.id)


class RiderUpdateApiTests(RideApiTestCase):
	def setUp(self):
		super().setUp()
		self.ride = make_ride(self.rider)

	def test_raise_addon_reprices(self):
		response = self.call(update_addon, 'put', self.rider, {'rider_price_addon': 30}, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['fare'], 286)
		self.assertEqual(response.data['ride']['rider_price_addon'], 30)

	def test_addon_cannot_drop(self):
		self.call(update_addon, 'put', self.rider, {'rider_price_addon': 30}, ride_id=self.ride.id)
		response = self.call(update_addon, 'put', self.rider, {'rider_price_addon': 10}, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 400)

	def test_addon_on_expired_request(self):
		Ride.objects.filter(pk=self.ride.pk).update(request_expires_at=timezone.now() - timedelta(seconds=1))
		response = self.call(update_addon, 'put', self.rider, {'rider_price_addon': 30}, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'ride_not_available')

	def test_live_location(self):
		response = self.call(
			update_live_location, 'put', self.rider,
			{'address': 'Gate 2', 'lat': 28.632, 'lng': 77.217},
			ride_id=self.ride.id,
		)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['rider_live_location']['address'], 'Gate 2')

	def test_cancel_open_request(self):
		response = self.call(cancel_ride, 'put', self.rider, {'reason': 'Changed plans'}, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 200)
		self.assertFalse(response.data['was_assigned'])
		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, RideStatus.CANCELLED)
		self.assertEqual(self.ride.cancellation_reason, 'Changed plans')

	def test_cancel_accepted_ride_frees_driver(self):
		driver = make_driver(is_available=False)
		Ride.objects.filter(pk=self.ride.pk).update(driver=driver, status=RideStatus.ACCEPTED)

		response = self.call(cancel_ride, 'put', self.rider, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['was_assigned'])
		driver.refresh_from_db()
		self.assertTrue(driver.is_available)

	def test_cannot_cancel_trip_in_progress(self):
		Ride.objects.filter(pk=self.ride.pk).update(driver=make_driver(), status=RideStatus.IN_PROGRESS)

		response = self.call(cancel_ride, 'put', self.rider, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'invalid_transition')


class RateRideApiTests(RideApiTestCase):
	def test_rate_completed_ride(self):
		driver = make_driver()
		ride = make_ride(self.rider, driver=driver, status=RideStatus.COMPLETED)

		response = self.call(rate_completed_ride, 'put', self.rider, {'rating': 5}, ride_id=ride.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['rating'], 5)

		again = self.call(rate_completed_ride, 'put', self.rider, {'rating': 4}, ride_id=ride.id)
		self.assertEqual(again.status_code, 409)
		self.assertEqual(again.data['error'], 'ride_already_rated')

	def test_rating_out_of_range(self):
		ride = make_ride(self.rider, driver=make_driver(), status=RideStatus.COMPLETED)

		response = self.call(rate_completed_ride, 'put', self.rider, {'rating': 7}, ride_id=ride.id)

		self.assertEqual(response.status_code, 400)
