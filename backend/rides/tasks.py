"""Celery tasks for ride-related background processing."""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task
def expire_stale_ride_requests_task():
    """
    Periodic sweep of ride requests nobody accepted in time.

    Request paths already run the same sweep lazily; this task only bounds
    how long an expired request can sit unnoticed when nobody is polling.
    """
    from services.ride_management import expire_stale_requests

    expired = expire_stale_requests()
    if expired:
        logger.info("Periodic sweep expired %d ride request(s)", expired)
    return expired
