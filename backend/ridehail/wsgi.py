"""WSGI config for the ridehail project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'ridehail.settings')

application = get_wsgi_application()
