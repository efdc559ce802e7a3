"""Helper methods for monitoring of course cache rebuilds."""
from edx_django_utils.monitoring import set_custom_attribute


def monitor_course_cache_rebuild(course_id, reason, partial=False):
    """
    Add custom attributes describing a course cache rebuild.

    Arguments:
        course_id (int): course whose payload is being rebuilt
        reason (str): why the rebuild happened, e.g. 'miss' or 'integrity'
        partial (bool): whether cached entries were reused
    """
    set_custom_attribute('course_modinfo_rebuild', course_id)
    set_custom_attribute('course_modinfo_rebuild_reason', reason)
    if partial:
        set_custom_attribute('course_modinfo_rebuild_partial', True)


def monitor_lock_timeout(key, wait):
    """
    Add custom attributes for a rebuild lock that could not be acquired.
    """
    set_custom_attribute('course_modinfo_lock_timeout', key)
    set_custom_attribute('course_modinfo_lock_wait', wait)
