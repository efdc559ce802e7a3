"""
Data types stored in, and expanded from, the versioned course cache.
"""
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Optional

# User id for graphs that must never compute user-dependent data.
USER_ID_NO_DYNAMIC = -1

NOGROUPS = 0
SEPARATEGROUPS = 1
VISIBLEGROUPS = 2

# Cached module fields dropped from the payload when empty, with the value
# they are restored to on load.
MODULE_CACHE_DEFAULTS = {
    'idnumber': '',
    'groupmode': 0,
    'groupingid': 0,
    'indent': 0,
    'completion': 0,
    'extra': '',
    'extraclasses': '',
    'iconurl': '',
    'onclick': '',
    'content': '',
    'icon': '',
    'iconcomponent': '',
    'customdata': None,
    'availability': None,
    'completionview': 0,
    'completionexpected': 0,
    'score': 0,
    'showdescription': 0,
    'deletioninprogress': 0,
}

# Section fields dropped from the payload when they equal the default exactly.
SECTION_CACHE_DEFAULTS = {
    'name': None,
    'summary': '',
    'summaryformat': 1,
    'visible': 1,
    'availability': None,
    'component': None,
    'itemid': None,
}

# Section fields that are never stored: the course is the cache key and
# the sequence is implied by the module order.
SECTION_UNCACHED_FIELDS = ('course', 'sequence')


def compress_module(data):
    """
    Returns a copy of a cached module dict without its empty optional fields.
    """
    compressed = dict(data)
    for name in MODULE_CACHE_DEFAULTS:
        if name in compressed and not compressed[name]:
            del compressed[name]
    # Usually None, but 0 is a meaningful grade item number.
    if 'completiongradeitemnumber' in compressed and compressed['completiongradeitemnumber'] is None:
        del compressed['completiongradeitemnumber']
    return compressed


def expand_module(data):
    """
    Returns a copy of a compressed module dict with every default restored.
    """
    expanded = dict(MODULE_CACHE_DEFAULTS)
    expanded['completiongradeitemnumber'] = None
    expanded.update(data)
    return expanded


def _is_same_value(value, default):
    return type(value) is type(default) and value == default


def compress_section(data):
    """
    Returns a copy of a raw section dict reduced to what the cache stores.
    """
    compressed = {
        name: value for name, value in data.items() if name not in SECTION_UNCACHED_FIELDS
    }
    for name, default in SECTION_CACHE_DEFAULTS.items():
        if name in compressed and _is_same_value(compressed[name], default):
            del compressed[name]
    return compressed


def expand_section(data):
    """
    Returns a copy of a compressed section dict with every default restored.
    """
    expanded = dict(SECTION_CACHE_DEFAULTS)
    expanded.update(data)
    return expanded


@dataclass
class CourseSummary:
    """
    The course row fields the cache needs.

    Any field left as None is filled in from the cached payload when a
    graph is built; ``cacherev`` always comes from the payload.
    """
    CACHED_FIELDS = ('shortname', 'fullname', 'format', 'enablecompletion', 'groupmode', 'groupmodeforce', 'cacherev')

    id: int
    cacherev: Optional[int] = None
    shortname: Optional[str] = None
    fullname: Optional[str] = None
    format: Optional[str] = None
    enablecompletion: Optional[int] = None
    groupmode: Optional[int] = None
    groupmodeforce: Optional[int] = None

    def copy(self):
        return replace(self)

    def cached_fields(self):
        return {name: getattr(self, name) for name in self.CACHED_FIELDS}

    @classmethod
    def from_dict(cls, data):
        names = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in names})


class RecordState(Enum):
    """
    Whether a stored course payload may be used as is.

    A STALE record has had entries purged and always triggers a full
    rebuild on the next read.
    """
    VALID = 'valid'
    STALE = 'stale'


@dataclass(frozen=True)
class CachedCourseRecord:
    """
    The versioned payload stored for one course.

    ``modules`` maps course module id to a compressed module dict in course
    order; ``sections`` maps section id to a compressed section dict in
    section number order. Records are never modified in place; the
    ``without_*`` methods return stale copies.
    """
    version: int
    modules: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    sections: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    course_fields: Dict[str, Any] = field(default_factory=dict)
    state: RecordState = RecordState.VALID

    @property
    def is_stale(self):
        return self.state is RecordState.STALE

    def without_modules(self, cm_ids):
        """
        Returns a stale copy without the given modules, or self if none of
        them is present.
        """
        cm_ids = set(cm_ids)
        if not cm_ids & set(self.modules):
            return self
        modules = {cm_id: data for cm_id, data in self.modules.items() if cm_id not in cm_ids}
        return replace(self, modules=modules, state=RecordState.STALE)

    def without_section(self, section_id):
        """
        Returns a stale copy without the given section, or self if it is not present.
        """
        if section_id not in self.sections:
            return self
        sections = {key: data for key, data in self.sections.items() if key != section_id}
        return replace(self, sections=sections, state=RecordState.STALE)

    def find_section_id(self, section_number):
        """
        Returns the id of the cached section with the given number, or None.
        """
        for section_id, data in self.sections.items():
            if data.get('section') == section_number:
                return section_id
        return None


@dataclass
class ModuleDisplayInfo:
    """
    Display data a module type may return from ``get_course_module_info``.

    Everything set here is stored in the course cache, so it must not
    depend on the user.
    """
    name: Optional[str] = None
    icon: Optional[str] = None
    iconcomponent: Optional[str] = None
    content: Optional[str] = None
    customdata: Any = None
    extraclasses: Optional[str] = None
    iconurl: Optional[str] = None
    onclick: Optional[str] = None
