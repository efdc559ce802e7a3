"""
Exceptions raised by the course module-information cache.
"""


class ModinfoError(Exception):
    """Base class for all course modinfo errors."""


class ItemNotFound(ModinfoError):
    """Raised when a requested course, module or section does not exist."""


class CourseNotFound(ItemNotFound):
    """Raised when the data source has no row for a course."""
    MESSAGE = "Course {course_id} does not exist"

    def __init__(self, course_id):
        self.course_id = course_id
        super().__init__(self.MESSAGE.format(course_id=course_id))


class CourseModuleNotFound(ItemNotFound):
    """Raised when a course module id is not present in a course."""
    MESSAGE = "Invalid course module id {cm_id}"

    def __init__(self, cm_id):
        self.cm_id = cm_id
        super().__init__(self.MESSAGE.format(cm_id=cm_id))


class ModuleInstanceNotFound(ItemNotFound):
    """Raised when a module instance id is not present in a course."""
    MESSAGE = "Invalid {modname} instance id {instance_id}"

    def __init__(self, modname, instance_id):
        self.modname = modname
        self.instance_id = instance_id
        super().__init__(self.MESSAGE.format(modname=modname, instance_id=instance_id))


class SectionNotFound(ItemNotFound):
    """Raised when a section lookup is made with strict=True and fails."""
    MESSAGE = "Section {key} does not exist"

    def __init__(self, key):
        self.key = key
        super().__init__(self.MESSAGE.format(key=key))


class InvalidModuleName(ModinfoError):
    """Raised when a module type name is syntactically invalid."""
    MESSAGE = "Invalid module name {modname!r}"

    def __init__(self, modname):
        super().__init__(self.MESSAGE.format(modname=modname))


class LockTimeout(ModinfoError):
    """
    Raised when the rebuild lock for a cache key could not be acquired in
    time. The caller must abort instead of reading possibly partial data.
    """
    MESSAGE = "Timed out after {wait}s waiting for the lock on {key}"

    def __init__(self, key, wait):
        self.key = key
        super().__init__(self.MESSAGE.format(key=key, wait=wait))


class LockNotHeld(ModinfoError):
    """Raised when an operation that requires the rebuild lock runs without it."""
    MESSAGE = "The lock on {key} must be held before building the course cache"

    def __init__(self, key):
        super().__init__(self.MESSAGE.format(key=key))


class ProtocolViolation(ModinfoError):
    """
    Raised when a plugin hook breaks the staged-materialization contract,
    e.g. by calling a dynamic-only setter from a view hook.
    """


class CorruptCache(ModinfoError):
    """Raised when a cached payload refers to a module that no longer exists."""
    MESSAGE = "Course cache integrity check failed: course module {cm_id} of course {course_id} has no context"

    def __init__(self, course_id, cm_id):
        self.course_id = course_id
        self.cm_id = cm_id
        super().__init__(self.MESSAGE.format(course_id=course_id, cm_id=cm_id))
