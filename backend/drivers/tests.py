from unittest.mock import patch

from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from rides.models import Ride, RideStatus
from services.tests.factories import PICKUP, make_driver, make_ride, make_rider, offset_point
from .views import (
	AcceptRideView,
	AvailableRidesView,
	DriverAvailabilityView,
	DriverCurrentRideView,
	DriverLocationUpdateView,
	DriverProfileView,
	DriverRideHistoryView,
	RideStatusView,
	VerifyPickupOtpView,
)


class DriverApiTestCase(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.rider = make_rider()
		self.driver = make_driver(categories=['economy', 'comfort'])

	def call(self, view_class, method, data=None, user=None, **kwargs):
		request = getattr(self.factory, method)('/api/driver/', data or {}, format='json')
		force_authenticate(request, user=user or self.driver.user)
		return view_class.as_view()(request, **kwargs)


class DriverProfileApiTests(DriverApiTestCase):
	def test_get_profile(self):
		response = self.call(DriverProfileView, 'get')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['vehicle_categories'], ['economy', 'comfort'])
		self.assertEqual(response.data['earnings'], 0)

	def test_update_vehicle(self):
		response = self.call(DriverProfileView, 'put', {'vehicle_color': 'Blue', 'vehicle_categories': ['premium', 'premium']})

		self.assertEqual(response.status_code, 200)
		self.driver.refresh_from_db()
		self.assertEqual(self.driver.vehicle_color, 'Blue')
		self.assertEqual(self.driver.vehicle_categories, ['premium'])

	def test_aggregates_are_read_only(self):
		self.call(DriverProfileView, 'put', {'earnings': 5000, 'rating_average': 5})

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.earnings, 0)
		self.assertEqual(self.driver.rating_average, 0)

	def test_riders_are_refused(self):
		response = self.call(DriverProfileView, 'get', user=self.rider)
		self.assertEqual(response.status_code, 403)

	def test_driver_account_without_profile(self):
		user = User.objects.create_user(
			username='noprofile', email='noprofile@example.com', password='pass1234', role=User.ROLE_DRIVER,
		)
		response = self.call(DriverProfileView, 'get', user=user)

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'driver_not_found')


class DriverAvailabilityApiTests(DriverApiTestCase):
	def test_go_offline_and_back(self):
		response = self.call(DriverAvailabilityView, 'put', {'is_available': False})
		self.assertEqual(response.status_code, 200)
		self.driver.refresh_from_db()
		self.assertFalse(self.driver.is_available)

		response = self.call(DriverAvailabilityView, 'put', {'is_available': True})
		self.assertEqual(response.status_code, 200)
		self.driver.refresh_from_db()
		self.assertTrue(self.driver.is_available)

	def test_cannot_go_available_during_a_ride(self):
		Ride.objects.filter(pk=make_ride(self.rider).pk).update(driver=self.driver, status=RideStatus.IN_PROGRESS)
		self.driver.is_available = False
		self.driver.save()

		response = self.call(DriverAvailabilityView, 'put', {'is_available': True})

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'driver_not_available')


class DriverLocationApiTests(DriverApiTestCase):
	@patch('realtime.notifications.notify_driver_location')
	def test_update_location_without_ride(self, mock_notify):
		response = self.call(DriverLocationUpdateView, 'put', {'address': 'Janpath', 'lat': 28.62, 'lng': 77.21})

		self.assertEqual(response.status_code, 200)
		self.driver.refresh_from_db()
		self.assertEqual(self.driver.current_address, 'Janpath')
		self.assertEqual(self.driver.current_latitude, 28.62)
		mock_notify.assert_not_called()

	@patch('realtime.notifications.notify_driver_location')
	def test_location_is_pushed_to_current_ride(self, mock_notify):
		ride = make_ride(self.rider)
		Ride.objects.filter(pk=ride.pk).update(driver=self.driver, status=RideStatus.ACCEPTED)

		self.call(DriverLocationUpdateView, 'put', {'lat': 28.62, 'lng': 77.21})

		mock_notify.assert_called_once()
		self.assertEqual(mock_notify.call_args[0][0].pk, ride.pk)

	def test_out_of_range_coordinates(self):
		response = self.call(DriverLocationUpdateView, 'put', {'lat': 95, 'lng': 77.21})
		self.assertEqual(response.status_code, 400)


class AvailableRidesApiTests(DriverApiTestCase):
	def test_lists_nearby_requests_without_pickup_code(self):
		near = make_ride(self.rider, pickup=offset_point(PICKUP, 1))
		make_ride(make_rider(), pickup=offset_point(PICKUP, 30))

		response = self.call(AvailableRidesView, 'get')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 1)
		ride = response.data['rides'][0]
		self.assertEqual(ride['id'], near.id)
		self.assertNotIn('pickup_otp', ride)
		self.assertAlmostEqual(ride['pickup_distance_km'], 1, places=2)
		self.assertEqual(ride['dispatch_radius_km'], 8)

	def test_offline_driver_gets_a_hint(self):
		self.driver.is_available = False
		self.driver.save()

		response = self.call(AvailableRidesView, 'get')

		self.assertIn('message', response.data)

	def list_with_limit(self, limit):
		request = self.factory.get('/api/driver/available-rides/', {'limit': limit})
		force_authenticate(request, user=self.driver.user)
		return AvailableRidesView.as_view()(request)

	def test_limit_must_be_numeric(self):
		response = self.list_with_limit('ten')

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'validation_error')

	def test_limit_must_be_positive(self):
		for _ in range(3):
			make_ride(make_rider(), pickup=offset_point(PICKUP, 1))

		for limit in ('0', '-1'):
			response = self.list_with_limit(limit)
			self.assertEqual(response.status_code, 400)
			self.assertEqual(response.data['error'], 'validation_error')

	def test_limit_caps_results(self):
		for _ in range(3):
			make_ride(make_rider(), pickup=offset_point(PICKUP, 1))

		response = self.list_with_limit('2')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 2)


class DriverRideFlowApiTests(DriverApiTestCase):
	"""Accept, verify the passenger, drive, complete."""

	def setUp(self):
		super().setUp()
		self.ride = make_ride(self.rider)

	def accept(self, driver=None):
		driver = driver or self.driver
		return self.call(AcceptRideView, 'put', user=driver.user, ride_id=self.ride.id)

	def test_full_trip(self):
		response = self.accept()
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['status'], RideStatus.ACCEPTED)
		self.assertNotIn('pickup_otp', response.data['ride'])

		self.ride.refresh_from_db()
		self.driver.refresh_from_db()
		self.assertFalse(self.driver.is_available)
		self.assertRegex(self.ride.pickup_otp, r'^\d{4}$')

		response = self.call(RideStatusView, 'put', {'status': 'in_progress'}, ride_id=self.ride.id)
		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'pickup_not_verified')

		response = self.call(VerifyPickupOtpView, 'put', {'otp': self.ride.pickup_otp}, ride_id=self.ride.id)
		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['ride']['pickup_otp_verified'])

		response = self.call(RideStatusView, 'put', {'status': 'in_progress'}, ride_id=self.ride.id)
		self.assertEqual(response.status_code, 200)

		response = self.call(DriverCurrentRideView, 'get')
		self.assertTrue(response.data['has_active_ride'])

		response = self.call(RideStatusView, 'put', {'status': 'completed'}, ride_id=self.ride.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['status'], RideStatus.COMPLETED)

		self.driver.refresh_from_db()
		self.assertTrue(self.driver.is_available)
		self.assertEqual(self.driver.total_rides, 1)
		self.assertEqual(self.driver.earnings, 256)

		response = self.call(DriverRideHistoryView, 'get')
		self.assertEqual(response.data['count'], 1)

	def test_losing_driver_gets_conflict(self):
		self.accept()
		response = self.accept(make_driver())

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'ride_already_claimed')

	def test_wrong_pickup_code(self):
		self.accept()
		response = self.call(VerifyPickupOtpView, 'put', {'otp': '0000'}, ride_id=self.ride.id)

		# 0000 is never issued
		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'otp_mismatch')

	def test_malformed_pickup_code(self):
		self.accept()
		response = self.call(VerifyPickupOtpView, 'put', {'otp': '12a4'}, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 400)

	def test_cannot_skip_to_completed(self):
		self.accept()
		response = self.call(RideStatusView, 'put', {'status': 'completed'}, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'invalid_transition')

	def test_other_driver_cannot_move_ride(self):
		self.accept()
		other = make_driver()
		response = self.call(RideStatusView, 'put', {'status': 'in_progress'}, user=other.user, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 403)

	def test_no_current_ride(self):
		response = self.call(DriverCurrentRideView, 'get')

		self.assertFalse(response.data['has_active_ride'])
