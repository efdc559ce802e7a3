"""
Course format plugins, as far as the course cache is concerned.

Formats register a ``CourseFormat`` subclass under the
``course_modinfo.course_format`` entry point namespace using the format
name stored in ``CourseSummary.format``. Courses whose format is not
installed fall back to the base class.
"""
import logging

from edx_django_utils.cache import RequestCache
from edx_django_utils.plugins import PluginError, PluginManager

log = logging.getLogger(__name__)

FORMAT_CACHE_NAMESPACE = 'course_modinfo.course_format'
SECTION_OPTIONS_CACHE_NAMESPACE = 'course_modinfo.section_format_options'


class CourseFormat:
    """
    Base course format. Sections have no format options, every section is
    valid and stealth modules are allowed where the section permits them.
    """
    name = None

    def __init__(self, course):
        self.course = course

    def section_format_options(self):
        """
        Returns a dict of option name to definition. A definition may hold
        'default', 'cache' (store the value in the course cache) and
        'cachedefault' (value that does not need to be stored).
        """
        return {}

    def get_format_options(self, section):  # pylint: disable=unused-argument
        """
        Returns the option values of a section, given as a raw row or a SectionHandle.
        """
        return {
            name: option.get('default')
            for name, option in self.section_format_options().items()
        }

    def get_last_section_number(self, graph):
        """
        Returns the highest section number that is valid in this format.
        Sections numbered above it are orphans.
        """
        numbers = list(graph.get_section_info_all())
        return max(numbers) if numbers else 0

    def section_get_available_hook(self, section, available, available_info):  # pylint: disable=unused-argument
        """
        Lets the format adjust a section's availability. Returns the
        (available, available_info) tuple to use; a format may make an
        unavailable section available but not the reverse.
        """
        return available, available_info

    def allow_stealth_module_visibility(self, raw_module, section):  # pylint: disable=unused-argument
        """
        Returns whether a module may be available but hidden from the course page.
        """
        return not section['section'] or bool(section['visible'])


class CourseFormatPluginManager(PluginManager):
    """
    Manager for all of the installed course formats.
    """
    NAMESPACE = 'course_modinfo.course_format'


def get_course_format_class(format_name):
    """
    Returns the CourseFormat class registered for format_name, or the base class.
    """
    if not format_name:
        return CourseFormat
    try:
        return CourseFormatPluginManager.get_plugin(format_name)
    except PluginError:
        log.warning('Course format %r is not installed, using the base format.', format_name)
        return CourseFormat


def get_course_format(course):
    """
    Returns the CourseFormat instance for a course, memoized per request.
    """
    request_cache = RequestCache(FORMAT_CACHE_NAMESPACE)
    cache_key = (course.id, course.format)
    cache_response = request_cache.get_cached_response(cache_key)
    if cache_response.is_found:
        return cache_response.value

    course_format = get_course_format_class(course.format)(course)
    request_cache.set(cache_key, course_format)
    return course_format


def get_section_format_options(course):
    """
    Returns the section option definitions of the course's format. They
    depend only on the format, so they are memoized per format name.
    """
    request_cache = RequestCache(SECTION_OPTIONS_CACHE_NAMESPACE)
    cache_response = request_cache.get_cached_response(course.format)
    if cache_response.is_found:
        return cache_response.value

    options = get_course_format(course).section_format_options()
    request_cache.set(course.format, options)
    return options


def reset_course_format_cache():
    """
    Forgets the memoized course formats and option definitions.
    """
    RequestCache(FORMAT_CACHE_NAMESPACE).clear()
    RequestCache(SECTION_OPTIONS_CACHE_NAMESPACE).clear()
