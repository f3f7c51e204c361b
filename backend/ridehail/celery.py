"""Celery application for ride background tasks."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ridehail.settings")

app = Celery("ridehail")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


@app.on_after_finalize.connect
def setup_periodic_tasks(sender, **kwargs):
    from django.conf import settings

    interval = getattr(settings, "RIDE_EXPIRY_SWEEP_SECONDS", 0)
    if interval and interval > 0:
        from rides.tasks import expire_stale_ride_requests_task

        sender.add_periodic_task(
            interval,
            expire_stale_ride_requests_task.s(),
            name="expire stale ride requests",
        )
