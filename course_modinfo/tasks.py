"""
Asynchronous tasks related to the course module-information cache.
"""
import logging

from celery import shared_task

from . import api
from .exceptions import LockTimeout

log = logging.getLogger('edx.celery.task')


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def rebuild_course_cache_task(self, course_id, partial_rebuild=False):
    """
    Rebuilds the cached modinfo payload of a course so that the next
    request does not have to.
    """
    try:
        api.rebuild_course_cache(course_id, partial_rebuild=partial_rebuild)
    except LockTimeout as exc:
        log.warning('Rebuild of course %s timed out waiting for its lock, retrying.', course_id)
        raise self.retry(exc=exc)
