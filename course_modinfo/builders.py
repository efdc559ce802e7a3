"""
Builds the versioned course payload from the data source.

ModuleRecordBuilder walks the section sequences and produces one
compressed dict per course module, asking each module type for its cached
display data. SectionCacheBuilder produces one compressed dict per section
with the cacheable course format options embedded. CourseCacheBuilder runs
both under the per-course lock and stores the result.
"""
import logging

from . import config
from .course_formats import get_course_format, get_section_format_options
from .exceptions import LockNotHeld
from .module_types import get_module_type
from .monitoring import monitor_course_cache_rebuild
from .records import CachedCourseRecord, ModuleDisplayInfo, compress_module, compress_section

log = logging.getLogger(__name__)

# Fields a ModuleDisplayInfo may contribute to the cached module.
DISPLAY_INFO_FIELDS = ('icon', 'iconcomponent', 'name', 'content', 'extraclasses', 'iconurl', 'onclick', 'customdata')
# Fields a legacy dict returned by get_course_module_info may contribute.
LEGACY_INFO_FIELDS = ('icon', 'iconcomponent', 'name', 'extra')


def course_cache_key(course_id):
    return f'course.{course_id}'


def parse_sequence(sequence):
    """
    Returns the course module ids of a section sequence, given either as
    a comma separated string or as a list.
    """
    if not sequence:
        return []
    if isinstance(sequence, str):
        return [int(cm_id) for cm_id in sequence.split(',') if cm_id.strip()]
    return [int(cm_id) for cm_id in sequence]


def check_course_integrity(course_id, raw_modules, sections):
    """
    Returns a list of messages describing mismatches between the section
    sequences and the section recorded on each course module.
    """
    messages = []
    listed = {}
    for section in sections:
        for cm_id in parse_sequence(section.get('sequence')):
            raw = raw_modules.get(cm_id)
            if raw is None:
                messages.append(
                    f'Course {course_id}: section {section["section"]} lists missing course module {cm_id}'
                )
            elif cm_id in listed:
                messages.append(
                    f'Course {course_id}: course module {cm_id} is listed in sections '
                    f'{listed[cm_id]} and {section["section"]}'
                )
            elif raw['section'] != section['id']:
                messages.append(
                    f'Course {course_id}: course module {cm_id} is listed in section {section["section"]} '
                    f'but belongs to section id {raw["section"]}'
                )
            listed.setdefault(cm_id, section['section'])
    for cm_id in raw_modules:
        if cm_id not in listed:
            messages.append(f'Course {course_id}: course module {cm_id} is not listed in any section')
    return messages


class ModuleRecordBuilder:
    """
    Produces the cached module dicts of a course.
    """

    def __init__(self, data_source, course_format, allow_stealth=None):
        self.data_source = data_source
        self.course_format = course_format
        if allow_stealth is None:
            allow_stealth = config.get_setting(config.ALLOW_STEALTH)
        self.allow_stealth = allow_stealth

    def build(self, course, cached_modules=None):
        """
        Returns a dict of course module id to compressed module dict, in
        section order and then sequence order.

        Entries present in cached_modules are reused as they are.
        """
        raw_modules = {row['id']: row for row in self.data_source.get_course_modules(course.id)}
        if not raw_modules:
            return {}
        cached_modules = cached_modules or {}

        sections = sorted(self.data_source.get_course_sections(course.id), key=lambda row: row['section'])
        for message in check_course_integrity(course.id, raw_modules, sections):
            log.warning(message)

        modules = {}
        for section in sections:
            for cm_id in parse_sequence(section.get('sequence')):
                if cm_id in modules:
                    continue
                if cm_id in cached_modules:
                    modules[cm_id] = cached_modules[cm_id]
                    continue
                raw = raw_modules.get(cm_id)
                if raw is None or raw['section'] != section['id']:
                    continue
                data = self.build_module(raw, section)
                if data is not None:
                    modules[cm_id] = data
        return modules

    def _visible_on_course_page(self, raw, section):
        """
        Stored value of visibleoncoursepage, which is only honoured when
        stealth modules are allowed by both the site and the format.
        """
        if (
            not raw.get('visible', 1) or
            raw.get('visibleoncoursepage', 1) or
            not self.allow_stealth or
            not self.course_format.allow_stealth_module_visibility(raw, section)
        ):
            return 1
        return 0

    def build_module(self, raw, section):
        """
        Returns the compressed cache dict of one course module, or None if
        its module type is not installed.
        """
        modname = raw['modname']
        module_type = get_module_type(modname)
        if module_type is None:
            log.info('Skipping course module %s: module type %r is not installed.', raw['id'], modname)
            return None

        data = {
            'id': raw['id'],
            'instance': raw['instance'],
            'modname': modname,
            'module': raw.get('module', 0),
            'sectionnum': section['section'],
            'sectionid': raw['section'],
            'added': raw.get('added', 0),
            'score': raw.get('score', 0),
            'idnumber': raw.get('idnumber', ''),
            'visible': raw.get('visible', 1),
            'visibleoncoursepage': self._visible_on_course_page(raw, section),
            'visibleold': raw.get('visibleold', 0),
            'groupmode': raw.get('groupmode', 0),
            'groupingid': raw.get('groupingid', 0),
            'indent': raw.get('indent', 0),
            'completion': raw.get('completion', 0),
            'extra': '',
            'completiongradeitemnumber': raw.get('completiongradeitemnumber'),
            'completionpassgrade': raw.get('completionpassgrade', 0),
            'completionview': raw.get('completionview', 0),
            'completionexpected': raw.get('completionexpected', 0),
            'showdescription': raw.get('showdescription', 0),
            'availability': raw.get('availability'),
            'deletioninprogress': raw.get('deletioninprogress', 0),
            'downloadcontent': raw.get('downloadcontent'),
            'lang': raw.get('lang'),
        }

        hook = getattr(module_type, 'get_course_module_info', None)
        if hook is not None:
            info = hook(raw, self.data_source)
            if isinstance(info, ModuleDisplayInfo):
                for name in DISPLAY_INFO_FIELDS:
                    value = getattr(info, name)
                    if value:
                        data[name] = value
            elif info:
                for name in LEGACY_INFO_FIELDS:
                    if info.get(name):
                        data[name] = info[name]
        elif data['showdescription']:
            instance = self.data_source.get_instance_record(modname, raw['instance'])
            if instance is not None:
                data['content'] = instance.get('intro') or ''
                data['name'] = instance.get('name')

        if data.get('name') is None:
            instance = self.data_source.get_instance_record(modname, raw['instance'])
            data['name'] = instance.get('name') if instance is not None else None

        return compress_module(data)


class SectionCacheBuilder:
    """
    Produces the cached section dicts of a course.
    """

    def __init__(self, data_source, course_format):
        self.data_source = data_source
        self.course_format = course_format

    def build(self, course, cached_sections=None):
        """
        Returns a dict of section id to compressed section dict in section
        number order. Entries present in cached_sections are reused.
        """
        cached_sections = cached_sections or {}
        option_definitions = get_section_format_options(course)
        cached_options = {
            name: option for name, option in option_definitions.items() if option.get('cache')
        }

        sections = {}
        rows = sorted(self.data_source.get_course_sections(course.id), key=lambda row: row['section'])
        for row in rows:
            if row['id'] in cached_sections:
                sections[row['id']] = cached_sections[row['id']]
                continue
            section = dict(row)
            if cached_options:
                values = self.course_format.get_format_options(row)
                for name, option in cached_options.items():
                    value = values.get(name)
                    if 'cachedefault' not in option or option['cachedefault'] != value:
                        section[name] = value
            sections[row['id']] = compress_section(section)
        return sections


class CourseCacheBuilder:
    """
    Rebuilds and stores the payload of a course under its lock.
    """

    def __init__(self, store, data_source):
        self.store = store
        self.data_source = data_source

    def build_course_cache(self, course, partial_rebuild=False, force=False, reason='miss'):
        """
        Returns a fresh CachedCourseRecord for course, building it unless
        another process stored one while we waited for the lock.

        With force, the payload is rebuilt even if the stored one looks fresh.
        With partial_rebuild, entries of the stored payload are reused.

        Raises:
            LockTimeout
        """
        key = course_cache_key(course.id)
        with self.store.lock(key):
            record = None
            if not force:
                record = self.store.get_versioned(key, course.cacherev)
            if record is None or record.is_stale or (course.cacherev or 0) > record.version:
                record = self.inner_build_course_cache(course, partial_rebuild, reason)
        return record

    def inner_build_course_cache(self, course, partial_rebuild=False, reason='miss'):
        """
        Builds and stores the payload. The caller must hold the course lock.
        """
        key = course_cache_key(course.id)
        if not self.store.check_lock_state(key):
            raise LockNotHeld(key)

        # Always use the latest cacherev.
        course = self.data_source.get_course(course.id)
        # Never store below a floor set by invalidate().
        version = max(course.cacherev or 0, self.store.get_floor(key))
        cached = self.store.peek(key) if partial_rebuild else None
        course_format = get_course_format(course)

        log.info('Building course cache for course %s at version %s (%s).', course.id, version, reason)
        monitor_course_cache_rebuild(course.id, reason, partial=cached is not None)

        modules = ModuleRecordBuilder(self.data_source, course_format).build(
            course, cached.modules if cached is not None else None
        )
        sections = SectionCacheBuilder(self.data_source, course_format).build(
            course, cached.sections if cached is not None else None
        )
        record = CachedCourseRecord(
            version=version,
            modules=modules,
            sections=sections,
            course_fields=course.cached_fields(),
        )
        self.store.set_versioned(key, version, record)
        return record
