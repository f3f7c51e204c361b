from datetime import timedelta

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from rides.models import RideStatus
from rides.tasks import expire_stale_ride_requests_task
from services.ride_management.expiry import expire_stale_requests, expiry_deadline, expiry_reason

from .factories import make_driver, make_rider, make_ride


class ExpirySweepTests(TestCase):
	def setUp(self):
		self.rider = make_rider()
		self.stale = make_ride(self.rider, expires_in=timedelta(seconds=-1))
		self.fresh = make_ride(make_rider(), expires_in=timedelta(minutes=4))

	def test_stale_request_is_cancelled_with_reason(self):
		self.assertEqual(expire_stale_requests(), 1)

		self.stale.refresh_from_db()
		self.fresh.refresh_from_db()
		self.assertEqual(self.stale.status, RideStatus.CANCELLED)
		self.assertEqual(self.stale.cancellation_reason, 'No driver accepted within 5 minutes')
		self.assertIsNotNone(self.stale.cancelled_at)
		self.assertEqual(self.fresh.status, RideStatus.REQUESTED)

	def test_sweep_is_idempotent(self):
		self.assertEqual(expire_stale_requests(), 1)
		self.stale.refresh_from_db()
		first_cancelled_at = self.stale.cancelled_at

		self.assertEqual(expire_stale_requests(), 0)
		self.stale.refresh_from_db()
		self.assertEqual(self.stale.cancelled_at, first_cancelled_at)

	def test_claimed_rides_never_expire(self):
		driver = make_driver()
		claimed = make_ride(make_rider(), expires_in=timedelta(seconds=-30), driver=driver, status=RideStatus.ACCEPTED)

		expire_stale_requests()

		claimed.refresh_from_db()
		self.assertEqual(claimed.status, RideStatus.ACCEPTED)

	def test_sweep_at_explicit_time(self):
		later = timezone.now() + timedelta(minutes=10)
		self.assertEqual(expire_stale_requests(now=later), 2)

	@override_settings(RIDE_REQUEST_TIMEOUT_MINUTES=2)
	def test_timeout_comes_from_settings(self):
		now = timezone.now()
		self.assertEqual(expiry_deadline(now), now + timedelta(minutes=2))
		self.assertEqual(expiry_reason(), 'No driver accepted within 2 minutes')

	def test_management_command_and_task_run_the_sweep(self):
		call_command('expire_ride_requests')
		self.stale.refresh_from_db()
		self.assertEqual(self.stale.status, RideStatus.CANCELLED)

		make_ride(make_rider(), expires_in=timedelta(seconds=-5))
		self.assertEqual(expire_stale_ride_requests_task(), 1)
