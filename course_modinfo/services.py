"""
Collaborators the course cache depends on but does not implement.

Deployments point the ``DATA_SOURCE``, ``AVAILABILITY_SERVICE``,
``PERMISSION_SERVICE`` and ``GROUPS_SERVICE`` settings at their own
implementations of these classes.
"""
import abc
from collections import namedtuple

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from . import config

# Capabilities checked by the cache itself.
VIEW_HIDDEN_ACTIVITIES = 'moodle/course:viewhiddenactivities'
IGNORE_AVAILABILITY_RESTRICTIONS = 'moodle/course:ignoreavailabilityrestrictions'
MANAGE_ACTIVITIES = 'moodle/course:manageactivities'
ACTIVITY_VISIBILITY = 'moodle/course:activityvisibility'
VIEW_HIDDEN_SECTIONS = 'moodle/course:viewhiddensections'

CONTEXT_COURSE = 'course'
CONTEXT_MODULE = 'module'


class AccessContext(namedtuple('AccessContext', ['level', 'instance_id'])):
    """
    The object a capability is checked against.
    """
    __slots__ = ()

    @classmethod
    def for_course(cls, course_id):
        return cls(CONTEXT_COURSE, course_id)

    @classmethod
    def for_module(cls, cm_id):
        return cls(CONTEXT_MODULE, cm_id)


class CourseDataSource(metaclass=abc.ABCMeta):
    """
    Row-oriented read access to the course, course_modules and
    course_sections tables.

    Rows are plain dicts keyed by column name.
    """

    @abc.abstractmethod
    def get_course(self, course_id):
        """
        Returns the current CourseSummary for course_id, read fresh.

        Raises:
            CourseNotFound
        """

    @abc.abstractmethod
    def get_course_ids(self):
        """
        Returns the ids of all courses.
        """

    @abc.abstractmethod
    def get_course_modules(self, course_id):
        """
        Returns the course_modules rows of a course, each including the
        module type as 'modname'.
        """

    @abc.abstractmethod
    def get_course_sections(self, course_id):
        """
        Returns the course_sections rows of a course ordered by section number.
        """

    @abc.abstractmethod
    def get_instance_record(self, modname, instance_id):
        """
        Returns the module instance row (with at least 'name'), or None.
        """

    @abc.abstractmethod
    def increment_cacherev(self, course_id):
        """
        Bumps the cacherev of a course and returns the new value.
        """

    def module_context_exists(self, cm_id):  # pylint: disable=unused-argument
        """
        Returns whether the access context of a course module still exists.
        """
        return True

    def get_course_id_for_module(self, cm_id):  # pylint: disable=unused-argument
        """
        Returns the id of the course a course module belongs to, or None.
        """
        return None

    def get_course_id_for_instance(self, modname, instance_id):  # pylint: disable=unused-argument
        """
        Returns the id of the course a module instance belongs to, or None.
        """
        return None


class AvailabilityService:
    """
    Evaluates availability rules. The default treats everything as available.
    """

    def is_available(self, owner, want_explanation, user_id, graph):  # pylint: disable=unused-argument
        """
        Returns a (available, explanation) tuple for a ModuleHandle or
        SectionHandle. The explanation is only meaningful when
        want_explanation is True.
        """
        return True, ''


class PermissionService:
    """
    Answers capability checks. The default grants nothing.
    """

    def capability_exists(self, capability):  # pylint: disable=unused-argument
        return False

    def has_capability(self, capability, context, user_id):  # pylint: disable=unused-argument
        return False

    def has_any_capability(self, capabilities, context, user_id):
        return any(self.has_capability(capability, context, user_id) for capability in capabilities)


class GroupsService:
    """
    Supplies group membership. The default user belongs to no groups.
    """

    def get_user_groups(self, course_id, user_id):  # pylint: disable=unused-argument
        """
        Returns a dict mapping grouping id to the list of the user's group ids
        in that grouping. Grouping 0 holds all of the user's groups.
        """
        return {}


class ModinfoServices:
    """
    The set of collaborators a registry and its graphs work with.
    """

    def __init__(self, data_source, availability=None, permissions=None, groups=None):
        self.data_source = data_source
        self.availability = availability or AvailabilityService()
        self.permissions = permissions or PermissionService()
        self.groups = groups or GroupsService()

    @classmethod
    def from_settings(cls):
        """
        Builds the services named in COURSE_MODINFO_SETTINGS.
        """
        data_source_path = config.get_setting(config.DATA_SOURCE)
        if not data_source_path:
            raise ImproperlyConfigured(
                'COURSE_MODINFO_SETTINGS["DATA_SOURCE"] must name a CourseDataSource implementation.'
            )
        return cls(
            data_source=import_string(data_source_path)(),
            availability=import_string(config.get_setting(config.AVAILABILITY_SERVICE))(),
            permissions=import_string(config.get_setting(config.PERMISSION_SERVICE))(),
            groups=import_string(config.get_setting(config.GROUPS_SERVICE))(),
        )
