from django.test import TestCase

from rides.models import Ride, RideStatus
from services.ride_management.exceptions import InvalidTransitionError
from services.ride_management.state_machine import ALLOWED_TRANSITIONS, can_transition, transition_ride

from .factories import make_driver, make_rider, make_ride


class TransitionTableTests(TestCase):
	def test_allowed_moves(self):
		self.assertTrue(can_transition(RideStatus.REQUESTED, RideStatus.ACCEPTED))
		self.assertTrue(can_transition(RideStatus.REQUESTED, RideStatus.CANCELLED))
		self.assertTrue(can_transition(RideStatus.ACCEPTED, RideStatus.IN_PROGRESS))
		self.assertTrue(can_transition(RideStatus.ACCEPTED, RideStatus.CANCELLED))
		self.assertTrue(can_transition(RideStatus.IN_PROGRESS, RideStatus.COMPLETED))

	def test_no_skipping_or_going_back(self):
		self.assertFalse(can_transition(RideStatus.REQUESTED, RideStatus.IN_PROGRESS))
		self.assertFalse(can_transition(RideStatus.REQUESTED, RideStatus.COMPLETED))
		self.assertFalse(can_transition(RideStatus.IN_PROGRESS, RideStatus.CANCELLED))
		self.assertFalse(can_transition(RideStatus.ACCEPTED, RideStatus.REQUESTED))

	def test_terminal_states_are_final(self):
		for terminal in (RideStatus.COMPLETED, RideStatus.CANCELLED):
			self.assertEqual(ALLOWED_TRANSITIONS[terminal], frozenset())
			for target in RideStatus.values:
				self.assertFalse(can_transition(terminal, target))


class TransitionRideTests(TestCase):
	def setUp(self):
		self.rider = make_rider()
		self.driver = make_driver()
		self.ride = make_ride(self.rider, driver=self.driver, status=RideStatus.ACCEPTED)

	def test_transition_stamps_timestamp(self):
		ride = transition_ride(self.ride, RideStatus.IN_PROGRESS)

		self.assertEqual(ride.status, RideStatus.IN_PROGRESS)
		self.assertIsNotNone(ride.started_at)

	def test_invalid_transition_is_rejected(self):
		with self.assertRaises(InvalidTransitionError) as ctx:
			transition_ride(self.ride, RideStatus.COMPLETED)

		self.assertEqual(ctx.exception.details['current_status'], 'accepted')
		self.assertEqual(ctx.exception.details['target_status'], 'completed')
		self.assertEqual(ctx.exception.status_code, 409)

	def test_stale_snapshot_does_not_overwrite(self):
		stale = Ride.objects.get(pk=self.ride.pk)
		transition_ride(self.ride, RideStatus.CANCELLED)

		# The stale copy still thinks the ride is accepted
		with self.assertRaises(InvalidTransitionError):
			transition_ride(stale, RideStatus.IN_PROGRESS)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, RideStatus.CANCELLED)
		self.assertIsNone(self.ride.started_at)
