from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from drivers.models import DriverProfile
from .models import User
from .views import LoginView, MeView, RefreshTokenView, RegisterView


def driver_payload(**extra):
	data = {
		'username': 'ravi',
		'email': 'ravi@example.com',
		'password': 'driver1234',
		'role': 'driver',
		'phone_number': '9100000001',
		'vehicle': {
			'make': 'Toyota',
			'model': 'Etios',
			'year': 2020,
			'plate': 'dl01ab1234',
			'color': 'White',
			'categories': ['economy', 'comfort', 'economy'],
		},
		'license_number': 'DL-0420110012345',
	}
	data.update(extra)
	return data


class RegisterTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()

	def register(self, data):
		request = self.factory.post('/api/auth/register/', data, format='json')
		return RegisterView.as_view()(request)

	def test_register_rider(self):
		response = self.register({
			'username': 'asha',
			'email': 'asha@example.com',
			'password': 'pass1234',
			'phone_number': '9000000001',
		})

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['user']['role'], 'rider')
		self.assertIn('access', response.data['tokens'])
		self.assertIn('refresh', response.data['tokens'])
		self.assertFalse(DriverProfile.objects.exists())

	def test_register_driver_creates_profile(self):
		response = self.register(driver_payload())

		self.assertEqual(response.status_code, 201)
		profile = DriverProfile.objects.get(user__username='ravi')
		self.assertEqual(profile.vehicle_plate, 'DL01AB1234')
		self.assertEqual(profile.vehicle_categories, ['economy', 'comfort'])
		self.assertTrue(profile.is_available)
		self.assertEqual(profile.rating_count, 0)

	def test_driver_needs_vehicle_and_license(self):
		response = self.register(driver_payload(vehicle=None, license_number=''))

		self.assertEqual(response.status_code, 400)
		self.assertFalse(User.objects.exists())

	def test_duplicate_username_conflicts(self):
		self.register(driver_payload())
		response = self.register(driver_payload(email='other@example.com', license_number='DL-1'))

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['field'], 'username')
		self.assertEqual(response.data['message'], 'username already in use')

	def test_duplicate_email_is_case_insensitive(self):
		self.register(driver_payload())
		response = self.register(driver_payload(username='ravi2', email='RAVI@example.com', license_number='DL-2'))

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['field'], 'email')

	def test_duplicate_license_conflicts(self):
		self.register(driver_payload())
		response = self.register(driver_payload(username='ravi2', email='ravi2@example.com'))

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['field'], 'license_number')
		self.assertEqual(User.objects.count(), 1)


class LoginTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.user = User.objects.create_user(
			username='asha', email='asha@example.com', password='pass1234', phone_number='9000000001',
		)

	def login(self, password):
		request = self.factory.post('/api/auth/login/', {'username': 'asha', 'password': password}, format='json')
		return LoginView.as_view()(request)

	def test_login_returns_tokens(self):
		response = self.login('pass1234')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['user']['id'], self.user.id)

		request = self.factory.post('/api/auth/refresh/', {'refresh': response.data['tokens']['refresh']}, format='json')
		refreshed = RefreshTokenView.as_view()(request)
		self.assertEqual(refreshed.status_code, 200)
		self.assertIn('access', refreshed.data)

	def test_wrong_password(self):
		self.assertEqual(self.login('nope').status_code, 400)

	def test_garbage_refresh_token(self):
		request = self.factory.post('/api/auth/refresh/', {'refresh': 'not-a-token'}, format='json')
		self.assertEqual(RefreshTokenView.as_view()(request).status_code, 401)


class MeTests(TestCase):
	def test_driver_me_includes_profile(self):
		factory = APIRequestFactory()
		RegisterView.as_view()(factory.post('/api/auth/register/', driver_payload(), format='json'))
		user = User.objects.get(username='ravi')

		request = factory.get('/api/auth/me/')
		force_authenticate(request, user=user)
		response = MeView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['role'], 'driver')
		self.assertEqual(response.data['driver_profile']['license_number'], 'DL-0420110012345')
		self.assertNotIn('user', response.data['driver_profile'])
