"""
CourseModuleGraph: the modules and sections of one course for one user.
"""
import logging

from .builders import CourseCacheBuilder, course_cache_key
from .exceptions import CorruptCache, CourseModuleNotFound, SectionNotFound
from .module_info import ModuleHandle
from .module_types import get_module_type, get_module_type_names
from .records import CourseSummary
from .section_info import SectionHandle
from .services import AccessContext

log = logging.getLogger(__name__)


def verify_record_integrity(record, course_id, data_source):
    """
    Raises CorruptCache if a module in the record no longer has a context,
    which happens when a module was deleted but the cache not rebuilt.
    """
    for cm_id in record.modules:
        if not data_source.module_context_exists(cm_id):
            raise CorruptCache(course_id, cm_id)


class CourseModuleGraph:
    """
    Indexes of the module and section handles of a course, built once
    from the versioned payload.

    Construct graphs through GraphRegistry.instance rather than directly.
    """

    def __init__(self, course, user_id, services, store, min_cacherev=None, check_integrity=False):
        """
        Arguments:
            course (CourseSummary): the course; its cacherev is looked up when None
            user_id (int): user the handles compute their state for, or
                USER_ID_NO_DYNAMIC to never compute user-dependent state
            services (ModinfoServices)
            store (VersionedStore)
            min_cacherev (int): lowest cacherev this process may use for the course
            check_integrity (bool): whether to verify that cached modules still exist
        """
        self.services = services
        self.user_id = user_id
        data_source = services.data_source

        if course.cacherev is None:
            course = data_source.get_course(course.id)
        else:
            course = course.copy()
        if min_cacherev is not None and course.cacherev < min_cacherev:
            course.cacherev = min_cacherev

        builder = CourseCacheBuilder(store, data_source)
        record = store.get_versioned(course_cache_key(course.id), course.cacherev)
        if record is None or record.is_stale or course.cacherev > record.version:
            record = builder.build_course_cache(course, reason='stale' if record is not None else 'miss')

        if check_integrity:
            try:
                verify_record_integrity(record, course.id, data_source)
            except CorruptCache as error:
                log.warning('%s. Rebuilding cache for course %s.', error, course.id)
                course = data_source.get_course(course.id)
                record = builder.build_course_cache(course, force=True, reason='integrity')

        for name, value in record.course_fields.items():
            if getattr(course, name) is None or name == 'cacherev':
                setattr(course, name, value)
        course.cacherev = record.version
        self._course = course

        self._cms = {}
        self._instances = {}
        self._section_modules = {}
        self._groups = None
        self._delegated_by_cm = None
        self._build_modules(record)
        self._build_sections(record)

    def _build_modules(self, record):
        module_types = {}
        for cm_id, data in record.modules.items():
            if data.get('name') is None or str(data['name']) == '':
                log.warning('Skipping course module %s of course %s: it has no name.', cm_id, self.course_id)
                continue
            modname = data['modname']
            if modname not in module_types:
                module_types[modname] = get_module_type(modname)
            if module_types[modname] is None:
                continue

            cm = ModuleHandle(self, data, module_types[modname])
            self._instances.setdefault(cm.modname, {})[cm.instance] = cm
            self._cms[cm.id] = cm
            # Records keep modules in course order.
            self._section_modules.setdefault(cm.section_number, []).append(cm.id)

    def _build_sections(self, record):
        sections_by_number = {}
        self._sections_by_id = {}
        self._delegated_sections = {}
        for data in record.sections.values():
            section = SectionHandle(self, data)
            sections_by_number[section.section_number] = section
            self._sections_by_id[section.id] = section
            if section.component:
                self._delegated_sections.setdefault(section.component, {})[section.itemid] = section
        self._sections_by_number = dict(sorted(sections_by_number.items()))

    def __repr__(self):
        return f'<CourseModuleGraph course={self.course_id} user={self.user_id}>'

    @property
    def course(self):
        return self._course

    @property
    def course_id(self):
        return self._course.id

    def has_capability_in_course(self, capability):
        return self.services.permissions.has_capability(
            capability, AccessContext.for_course(self.course_id), self.user_id
        )

    # Modules

    def get_cms(self):
        """
        Returns a dict of course module id to ModuleHandle, in course order.
        """
        return self._cms

    def get_cm(self, cm_id):
        """
        Raises:
            CourseModuleNotFound
        """
        try:
            return self._cms[cm_id]
        except KeyError:
            raise CourseModuleNotFound(cm_id)  # pylint: disable=raise-missing-from

    def get_instances(self):
        """
        Returns a dict of module type name to a dict of instance id to ModuleHandle.
        """
        return self._instances

    def get_instances_of(self, modname):
        return self._instances.get(modname, {})

    def get_used_module_names(self, plural=False):
        """
        Returns a dict of module type name to display name for the types
        that have at least one module visible to the user.
        """
        names = get_module_type_names(plural)
        used = {}
        for cm in self._cms.values():
            if cm.modname not in used and cm.modname in names and cm.user_visible:
                used[cm.modname] = names[cm.modname]
        return used

    def get_groups(self, grouping_id=0):
        """
        Returns the ids of the user's groups in a grouping, 0 meaning all groupings.
        """
        if self._groups is None:
            self._groups = self.services.groups.get_user_groups(self.course_id, self.user_id)
        return self._groups.get(grouping_id, [])

    # Sections

    def get_sections(self):
        """
        Returns a dict of section number to the ordered ids of its modules.
        """
        return self._section_modules

    def get_section_info_all(self):
        """
        Returns a dict of section number to SectionHandle, in section order.
        """
        return self._sections_by_number

    def get_listed_section_info_all(self):
        """
        Returns the sections that are part of the course outline, leaving
        out those owned by an installed component.
        """
        if not self._delegated_sections:
            return self._sections_by_number
        return {
            number: section for number, section in self._sections_by_number.items()
            if section.get_component_instance() is None
        }

    def get_section_info(self, section_number, strict=False):
        """
        Returns the SectionHandle with the given number, or None.

        Raises:
            SectionNotFound: when strict and there is no such section
        """
        section = self._sections_by_number.get(section_number)
        if section is None and strict:
            raise SectionNotFound(section_number)
        return section

    def get_section_info_by_id(self, section_id, strict=False):
        section = self._sections_by_id.get(section_id)
        if section is None and strict:
            raise SectionNotFound(f'id {section_id}')
        return section

    def get_section_info_by_component(self, component, itemid, strict=False):
        section = self._delegated_sections.get(component, {}).get(itemid)
        if section is None and strict:
            raise SectionNotFound(f'{component}:{itemid}')
        return section

    def has_delegated_sections(self):
        return bool(self._delegated_sections)

    def get_sections_delegated_by_cm(self):
        """
        Returns a dict of course module id to the SectionHandle that module owns.
        """
        if self._delegated_by_cm is None:
            self._delegated_by_cm = {}
            for component_sections in self._delegated_sections.values():
                for section in component_sections.values():
                    cm = section.get_delegating_cm()
                    if cm is not None:
                        self._delegated_by_cm[cm.id] = section
        return self._delegated_by_cm


def coerce_course(course):
    """
    Returns a CourseSummary for a CourseSummary, a course id or a course row dict.
    """
    if isinstance(course, CourseSummary):
        return course
    if isinstance(course, dict):
        return CourseSummary.from_dict(course)
    return CourseSummary(id=int(course))
