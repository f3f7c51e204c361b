from unittest.mock import AsyncMock, MagicMock, patch

from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase, TestCase, override_settings

from accounts.models import User
from rides.models import RideStatus
from services.dispatch import accept_ride
from services.ride_management import DriverNotAvailableError, cancel_ride_by_rider
from services.tests.factories import make_driver, make_ride, make_rider
from .consumers.ride_consumer import RideConsumer
from .notifications import _group_send, driver_group, ride_group, rider_group

IN_MEMORY_LAYER = {'default': {'BACKEND': 'channels.layers.InMemoryChannelLayer'}}


@patch('realtime.notifications._group_send')
class RideNotificationTests(TestCase):
	def setUp(self):
		self.rider = make_rider()
		self.driver = make_driver()
		self.ride = make_ride(self.rider)

	def sent(self, mock_send):
		return {(call[0][0], call[0][1]['type']): call[0][1] for call in mock_send.call_args_list}

	def test_nothing_sent_before_commit(self, mock_send):
		accept_ride(self.driver, self.ride.id)
		mock_send.assert_not_called()

	def test_accept_notifies_both_parties(self, mock_send):
		with self.captureOnCommitCallbacks(execute=True):
			accept_ride(self.driver, self.ride.id)

		sent = self.sent(mock_send)
		rider_event = sent[(rider_group(self.rider.id), 'ride_accepted')]
		driver_event = sent[(driver_group(self.driver.user_id), 'ride_accepted')]
		self.assertIn((ride_group(self.ride.id), 'ride_accepted'), sent)

		self.assertEqual(rider_event['status'], RideStatus.ACCEPTED)
		self.assertRegex(rider_event['ride_data']['pickup_otp'], r'^\d{4}$')
		self.assertNotIn('pickup_otp', driver_event['ride_data'])

	def test_rejected_accept_sends_nothing(self, mock_send):
		self.driver.is_available = False
		self.driver.save()

		with self.captureOnCommitCallbacks(execute=True):
			with self.assertRaises(DriverNotAvailableError):
				accept_ride(self.driver, self.ride.id)

		mock_send.assert_not_called()

	def test_cancel_after_accept_tells_driver(self, mock_send):
		accept_ride(self.driver, self.ride.id)

		with self.captureOnCommitCallbacks(execute=True):
			cancel_ride_by_rider(self.rider, self.ride.id)

		sent = self.sent(mock_send)
		self.assertIn((driver_group(self.driver.user_id), 'ride_cancelled'), sent)
		self.assertIn((ride_group(self.ride.id), 'ride_cancelled'), sent)


class GroupSendTests(SimpleTestCase):
	@patch('realtime.notifications.get_channel_layer')
	def test_sends_through_channel_layer(self, mock_get_layer):
		layer = MagicMock()
		layer.group_send = AsyncMock()
		mock_get_layer.return_value = layer

		self.assertTrue(_group_send('user_1', {'type': 'ride_expired'}))
		layer.group_send.assert_awaited_once_with('user_1', {'type': 'ride_expired'})

	@patch('realtime.notifications.get_channel_layer')
	def test_layer_failure_is_not_raised(self, mock_get_layer):
		layer = MagicMock()
		layer.group_send = AsyncMock(side_effect=ConnectionError('redis down'))
		mock_get_layer.return_value = layer

		self.assertFalse(_group_send('user_1', {'type': 'ride_expired'}))

	@patch('realtime.notifications.get_channel_layer', return_value=None)
	def test_missing_layer(self, mock_get_layer):
		self.assertFalse(_group_send('user_1', {'type': 'ride_expired'}))


@override_settings(CHANNEL_LAYERS=IN_MEMORY_LAYER)
class RideConsumerTests(SimpleTestCase):
	def communicator(self, user):
		communicator = WebsocketCommunicator(RideConsumer.as_asgi(), '/ws/rides/')
		communicator.scope['user'] = user
		return communicator

	async def test_anonymous_connection_closed(self):
		connected, _ = await self.communicator(AnonymousUser()).connect()
		self.assertFalse(connected)

	async def test_ping(self):
		communicator = self.communicator(User(id=41, username='asha', role=User.ROLE_RIDER))
		connected, _ = await communicator.connect()
		self.assertTrue(connected)

		greeting = await communicator.receive_json_from()
		self.assertEqual(greeting['type'], 'connection_established')
		self.assertEqual(greeting['role'], 'rider')

		await communicator.send_json_to({'type': 'ping'})
		self.assertEqual((await communicator.receive_json_from())['type'], 'pong')

		await communicator.send_json_to({'type': 'teleport'})
		self.assertEqual((await communicator.receive_json_from())['type'], 'error')
		await communicator.disconnect()

	async def test_driver_receives_driver_group_events(self):
		communicator = self.communicator(User(id=42, username='ravi', role=User.ROLE_DRIVER))
		await communicator.connect()
		await communicator.receive_json_from()

		await get_channel_layer().group_send(driver_group(42), {
			'type': 'ride_cancelled',
			'ride_id': 7,
			'status': 'cancelled',
			'message': 'Passenger cancelled this ride.',
		})

		event = await communicator.receive_json_from()
		self.assertEqual(event['type'], 'ride_cancelled')
		self.assertEqual(event['ride_id'], 7)
		self.assertEqual(event['status'], 'cancelled')
		await communicator.disconnect()

	async def test_start_tracking_requires_ride_id(self):
		communicator = self.communicator(User(id=43, username='meera', role=User.ROLE_RIDER))
		await communicator.connect()
		await communicator.receive_json_from()

		await communicator.send_json_to({'type': 'start_tracking'})
		response = await communicator.receive_json_from()

		self.assertEqual(response['type'], 'error')
		await communicator.disconnect()
