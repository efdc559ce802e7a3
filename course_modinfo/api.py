"""
Public API of the course module-information cache.
"""
from .exceptions import CourseModuleNotFound, ModuleInstanceNotFound
from .graph import coerce_course
from .module_types import validate_module_name
from .registry import GraphRegistry
from .services import ModinfoServices
from .store import VersionedStore

_registry = None


def _get_registry():
    """
    Returns:
        GraphRegistry
    """
    global _registry  # pylint: disable=global-statement
    if _registry is None:
        _registry = GraphRegistry(ModinfoServices.from_settings(), VersionedStore())
    return _registry


def get_fast_modinfo(course, user_id=0, reset_only=False):
    """
    Returns the CourseModuleGraph of a course for a user.

    Arguments:
        course: CourseSummary, course row dict or course id
        user_id (int): 0 for the current user, -1 for no user-dependent data
        reset_only (bool): only clear the in-process graph (of all courses
            when course is falsy) and return None
    """
    if reset_only:
        _get_registry().clear(course or None)
        return None
    return _get_registry().instance(course, user_id)


def _resolve_course(course, course_id, lookup):
    if course is not None:
        return coerce_course(course)
    if not course_id:
        course_id = lookup()
    if not course_id:
        return None
    return coerce_course(course_id)


def get_course_and_cm_from_cmid(cm, module_name='', course=None, user_id=0):
    """
    Returns a (CourseSummary, ModuleHandle) tuple for a course module.

    Arguments:
        cm: course module id, or a dict with 'id' and optionally 'course'
        module_name (str): when given, the module must be of this type
        course: the course, when already known

    Raises:
        InvalidModuleName, CourseModuleNotFound
    """
    if isinstance(cm, dict):
        cm_id, course_id = int(cm['id']), int(cm.get('course') or 0)
    else:
        cm_id, course_id = int(cm), 0
    if module_name:
        validate_module_name(module_name)

    data_source = _get_registry().services.data_source
    course = _resolve_course(course, course_id, lambda: data_source.get_course_id_for_module(cm_id))
    if course is None:
        raise CourseModuleNotFound(cm_id)

    modinfo = get_fast_modinfo(course, user_id)
    cm_info = modinfo.get_cm(cm_id)
    if module_name and cm_info.modname != module_name:
        raise CourseModuleNotFound(cm_id)
    return modinfo.course, cm_info


def get_course_and_cm_from_instance(instance, module_name, course=None, user_id=0):
    """
    Returns a (CourseSummary, ModuleHandle) tuple for a module instance.

    Arguments:
        instance: instance id, or a dict with 'id' and optionally 'course'
        module_name (str): module type of the instance

    Raises:
        InvalidModuleName, ModuleInstanceNotFound
    """
    if isinstance(instance, dict):
        instance_id, course_id = int(instance['id']), int(instance.get('course') or 0)
    else:
        instance_id, course_id = int(instance), 0
    validate_module_name(module_name)

    data_source = _get_registry().services.data_source
    course = _resolve_course(
        course, course_id, lambda: data_source.get_course_id_for_instance(module_name, instance_id)
    )
    if course is None:
        raise ModuleInstanceNotFound(module_name, instance_id)

    modinfo = get_fast_modinfo(course, user_id)
    instances = modinfo.get_instances_of(module_name)
    if instance_id not in instances:
        raise ModuleInstanceNotFound(module_name, instance_id)
    return modinfo.course, instances[instance_id]


def rebuild_course_cache(course_id=0, clear_only=False, partial_rebuild=False):
    """
    Rebuilds the cache of one course, or of all courses when course_id is 0.
    """
    _get_registry().rebuild_course_cache(course_id, clear_only, partial_rebuild)


def purge_course_cache(course_id):
    """
    Marks the cache of a course stale. Returns the new cacherev.
    """
    return _get_registry().purge_course_cache(course_id)


def purge_course_caches(course_ids=None):
    _get_registry().purge_course_caches(course_ids)


def purge_course_module_cache(course_id, cm_id):
    _get_registry().purge_course_module_cache(course_id, cm_id)


def purge_course_modules_cache(course_id, cm_ids):
    _get_registry().purge_course_modules_cache(course_id, cm_ids)


def purge_course_section_cache_by_id(course_id, section_id):
    _get_registry().purge_course_section_cache_by_id(course_id, section_id)


def purge_course_section_cache_by_number(course_id, section_number):
    _get_registry().purge_course_section_cache_by_number(course_id, section_number)


def clear_instance_cache(course=None, new_cacherev=0):
    """
    Forgets in-process graphs; always safe to call.
    """
    _get_registry().clear(course, new_cacherev)


def set_current_course(course_id):
    """
    Marks the course served by the current request, whose cache is
    integrity checked whenever its graph is built.
    """
    _get_registry().current_course_id = course_id
