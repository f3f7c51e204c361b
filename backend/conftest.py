import pytest
from django.test import SimpleTestCase


@pytest.fixture(autouse=True)
def _django_runner_db_guard_for_simple_tests(request, django_db_blocker):
	# Run DB-less SimpleTestCase classes the way Django's own test runner does:
	# SimpleTestCase already fails real queries/connects, so pytest-django's
	# stricter blocker (which also trips on Channels' close_old_connections
	# health check of an already-open connection) is lifted for them.
	cls = getattr(request, 'cls', None)
	if cls is not None and issubclass(cls, SimpleTestCase) and not cls.databases:
		with django_db_blocker.unblock():
			yield
	else:
		yield
