"""
Course Modinfo Application Configuration
"""

from django.apps import AppConfig


class CourseModinfoConfig(AppConfig):
    """
    Application Configuration for Course Modinfo.
    """
    name = 'course_modinfo'
    verbose_name = 'Course Module Information Cache'

    def ready(self):
        """
        Connect handlers to signals.
        """
        from . import signals  # pylint: disable=unused-import
