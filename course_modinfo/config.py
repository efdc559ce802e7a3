"""
Settings for the course module-information cache.

All values are read from the ``COURSE_MODINFO_SETTINGS`` dict in Django
settings, falling back to ``DEFAULTS`` for any key that is not present.
"""
from django.conf import settings

# Django cache alias backing the versioned store.
CACHE_NAME = 'CACHE_NAME'
CACHE_KEY_PREFIX = 'CACHE_KEY_PREFIX'
CACHE_TIMEOUT = 'CACHE_TIMEOUT'

# Per-course rebuild lock, in seconds.
LOCK_EXPIRY = 'LOCK_EXPIRY'
LOCK_WAIT = 'LOCK_WAIT'
LOCK_POLL_INTERVAL = 'LOCK_POLL_INTERVAL'

# Maximum number of course graphs held by one registry.
INSTANCE_CACHE_SIZE = 'INSTANCE_CACHE_SIZE'

ENABLE_AVAILABILITY = 'ENABLE_AVAILABILITY'
ALLOW_STEALTH = 'ALLOW_STEALTH'

# When True, protocol violations raise; otherwise they are logged and ignored.
STRICT_PROTOCOL = 'STRICT_PROTOCOL'

SITE_COURSE_ID = 'SITE_COURSE_ID'

DATA_SOURCE = 'DATA_SOURCE'
AVAILABILITY_SERVICE = 'AVAILABILITY_SERVICE'
PERMISSION_SERVICE = 'PERMISSION_SERVICE'
GROUPS_SERVICE = 'GROUPS_SERVICE'

ASYNC_REBUILD = 'ASYNC_REBUILD'

DEFAULTS = {
    CACHE_NAME: 'default',
    CACHE_KEY_PREFIX: 'course_modinfo',
    CACHE_TIMEOUT: None,
    LOCK_EXPIRY: 180,
    LOCK_WAIT: 60,
    LOCK_POLL_INTERVAL: 0.05,
    INSTANCE_CACHE_SIZE: 10,
    ENABLE_AVAILABILITY: True,
    ALLOW_STEALTH: False,
    STRICT_PROTOCOL: True,
    SITE_COURSE_ID: 1,
    DATA_SOURCE: None,
    AVAILABILITY_SERVICE: 'course_modinfo.services.AvailabilityService',
    PERMISSION_SERVICE: 'course_modinfo.services.PermissionService',
    GROUPS_SERVICE: 'course_modinfo.services.GroupsService',
    ASYNC_REBUILD: False,
}


def get_setting(name):
    """
    Returns the value of the given course modinfo setting.
    """
    overrides = getattr(settings, 'COURSE_MODINFO_SETTINGS', {})
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
