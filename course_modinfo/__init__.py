"""
The Course Modinfo app caches per-course module and section information
so that course pages can be rendered without walking the course_modules
and course_sections tables on every request.

The cache has two tiers. A versioned payload (CachedCourseRecord) is kept
in a shared Django cache, keyed by course id and stamped with the course's
cacherev; it is rebuilt under a per-course lock whenever it is missing or
stale. Each process then expands the payload into a CourseModuleGraph per
(course, user) pair, whose ModuleHandle and SectionHandle objects lazily
compute the user-dependent state (availability, visibility, display data)
by calling out to the module type plugins.

Other apps should go through course_modinfo.api rather than constructing
graphs directly, and must call one of the purge functions in that module
(or send one of the signals in course_modinfo.signals) whenever they
change the underlying rows.
"""
