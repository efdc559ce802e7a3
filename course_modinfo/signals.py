"""
Signals sent by apps that change course content, and the handlers that
invalidate the corresponding cache entries.
"""
import logging

from django.dispatch import Signal
from django.dispatch.dispatcher import receiver

from . import api, config
from .tasks import rebuild_course_cache_task

log = logging.getLogger(__name__)

# Arguments: course_id
course_content_changed = Signal()
# Arguments: course_id, cm_ids
course_modules_changed = Signal()
# Arguments: course_id, and one of section_id or section_number
course_section_changed = Signal()


def _schedule_rebuild(course_id, partial_rebuild=False):
    if config.get_setting(config.ASYNC_REBUILD):
        rebuild_course_cache_task.delay(course_id, partial_rebuild=partial_rebuild)


@receiver(course_content_changed)
def _listen_for_course_content_change(sender, course_id, **kwargs):  # pylint: disable=unused-argument
    """
    Catches the signal that the structure of a course has changed and
    marks its cache stale.
    """
    api.purge_course_cache(course_id)
    _schedule_rebuild(course_id)


@receiver(course_modules_changed)
def _listen_for_course_modules_change(sender, course_id, cm_ids, **kwargs):  # pylint: disable=unused-argument
    """
    Catches the signal that course modules were updated and drops them
    from the course cache.
    """
    api.purge_course_modules_cache(course_id, cm_ids)
    _schedule_rebuild(course_id, partial_rebuild=True)


@receiver(course_section_changed)
def _listen_for_course_section_change(sender, course_id, section_id=None, section_number=None, **kwargs):  # pylint: disable=unused-argument
    """
    Catches the signal that a section was updated and drops it from the
    course cache.
    """
    if section_id is not None:
        api.purge_course_section_cache_by_id(course_id, section_id)
    elif section_number is not None:
        api.purge_course_section_cache_by_number(course_id, section_number)
    else:
        log.warning('course_section_changed sent for course %s without a section.', course_id)
        return
    _schedule_rebuild(course_id, partial_rebuild=True)
