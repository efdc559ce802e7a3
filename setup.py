"""
Setup script for the course module-information cache.
"""

from setuptools import setup

MODULE_TYPES = [
    "label = course_modinfo.module_types.label:Label",
    "subsection = course_modinfo.module_types.subsection:Subsection",
]
SECTION_DELEGATES = [
    "mod_subsection = course_modinfo.delegation:ModuleSectionDelegate",
]


setup(
    name="course-modinfo",
    version='0.1.0',
    description="Versioned, per-user cache of course module and section information",
    python_requires=">=3.8",
    install_requires=[
        "Django",
        "edx-django-utils",
        "django-crum",
        "celery",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-django",
            "ddt",
        ],
    },
    packages=[
        "course_modinfo",
        "course_modinfo.module_types",
        "course_modinfo.tests",
    ],
    entry_points={
        "course_modinfo.module_type": MODULE_TYPES,
        # Course formats are installed by their own packages.
        "course_modinfo.course_format": [],
        "course_modinfo.section_delegate": SECTION_DELEGATES,
    }
)
