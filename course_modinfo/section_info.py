"""
SectionHandle: one course section as seen by one user.
"""
import logging

from . import config
from .course_formats import get_course_format, get_section_format_options
from .delegation import ModuleSectionDelegate, get_section_delegate
from .module_info import report_protocol_violation
from .records import USER_ID_NO_DYNAMIC, expand_section
from .services import IGNORE_AVAILABILITY_RESTRICTIONS, VIEW_HIDDEN_SECTIONS, AccessContext

log = logging.getLogger(__name__)

_NOT_LOADED = object()


class SectionHandle:
    """
    Live view of one cached section for the user of its graph.

    Availability, visibility, orphan state and the delegate are computed
    once and kept for the lifetime of the handle; None marks a value that
    has not been computed yet.
    """

    def __init__(self, graph, data):
        self.graph = graph
        data = expand_section(data)
        self.id = data['id']
        self.section_number = data['section']
        self.name = data['name']
        self.summary = data['summary']
        self.summaryformat = data['summaryformat']
        self.visible = data['visible']
        self.availability = data['availability']
        self.component = data['component']
        self.itemid = data['itemid']

        self._cached_format_options = {}
        for name, option in get_section_format_options(graph.course).items():
            if not option.get('cache'):
                continue
            if name in data:
                self._cached_format_options[name] = data[name]
            elif 'cachedefault' in option:
                self._cached_format_options[name] = option['cachedefault']

        self._available = None
        self._available_info = None
        self._user_visible = None
        self._is_orphan = None
        self._delegate = _NOT_LOADED
        self._sequence_cms = None

    def __repr__(self):
        return f'<SectionHandle {self.section_number} id={self.id}>'

    @property
    def course_id(self):
        return self.graph.course_id

    def format_option(self, name):
        """
        Returns the value of a course format option for this section, from
        the cache when the format caches it.
        """
        if name in self._cached_format_options:
            return self._cached_format_options[name]
        if name in get_section_format_options(self.graph.course):
            return get_course_format(self.graph.course).get_format_options(self).get(name)
        log.warning('Invalid section format option %r requested for section %s.', name, self.id)
        return None

    # Delegation

    def is_delegated(self):
        return bool(self.component)

    def get_component_instance(self):
        """
        Returns the SectionDelegate owning this section, or None.
        """
        if not self.is_delegated():
            return None
        if self._delegate is _NOT_LOADED:
            self._delegate = get_section_delegate(self)
        return self._delegate

    def get_delegating_cm(self):
        """
        Returns the ModuleHandle owning this section, or None.
        """
        delegate = self.get_component_instance()
        if not isinstance(delegate, ModuleSectionDelegate):
            return None
        return delegate.get_cm()

    def _check_delegated_available(self):
        parent_cm = self.get_delegating_cm()
        if parent_cm is None:
            return True
        if not parent_cm.available:
            return False
        parent_section = parent_cm.get_section_info()
        return parent_section.available if parent_section is not None else True

    def _check_delegated_user_visible(self):
        parent_cm = self.get_delegating_cm()
        if parent_cm is None:
            return True
        if not parent_cm.user_visible:
            return False
        parent_section = parent_cm.get_section_info()
        return parent_section.user_visible if parent_section is not None else True

    def is_orphan(self):
        """
        Returns whether the section is beyond the format's last section or
        delegated to a component that is no longer installed.
        """
        if self._is_orphan is None:
            course_format = get_course_format(self.graph.course)
            self._is_orphan = (
                self.section_number > course_format.get_last_section_number(self.graph) or
                (self.is_delegated() and self.get_component_instance() is None)
            )
        return self._is_orphan

    # Availability and visibility

    @property
    def available(self):
        """
        Whether the section's availability rules let the user in. Sections
        delegated to a module are also unavailable whenever that module or
        its own section is.
        """
        user_id = self.graph.user_id
        if self._available is not None or user_id == USER_ID_NO_DYNAMIC:
            return self._available

        self._available = True
        self._available_info = ''
        if config.get_setting(config.ENABLE_AVAILABILITY):
            self._available, self._available_info = self.graph.services.availability.is_available(
                self, True, user_id, self.graph
            )
        if self._available:
            self._available = self._check_delegated_available()

        previous = self._available
        available, available_info = get_course_format(self.graph.course).section_get_available_hook(
            self, self._available, self._available_info
        )
        if previous and not available:
            self._available = None
            report_protocol_violation(
                f'section_get_available_hook() can not make available section {self.id} unavailable'
            )
            self._available = previous
        else:
            self._available, self._available_info = available, available_info
        return self._available

    @property
    def available_info(self):
        self.available  # pylint: disable=pointless-statement
        return self._available_info

    @property
    def user_visible(self):
        user_id = self.graph.user_id
        if self._user_visible is not None or user_id == USER_ID_NO_DYNAMIC:
            return self._user_visible

        if not self._check_delegated_user_visible():
            self._user_visible = False
            return self._user_visible

        self._user_visible = True
        if self.is_orphan() or not self.visible or not self.available:
            permissions = self.graph.services.permissions
            context = AccessContext.for_course(self.course_id)
            if (
                (self.is_orphan() or not self.visible) and
                not permissions.has_capability(VIEW_HIDDEN_SECTIONS, context, user_id)
            ):
                self._user_visible = False
            if (
                self._user_visible and not self.available and
                not permissions.has_capability(IGNORE_AVAILABILITY_RESTRICTIONS, context, user_id)
            ):
                self._user_visible = False
        return self._user_visible

    # Modules

    @property
    def sequence(self):
        """
        Returns the ids of the modules in this section, in order.
        """
        return list(self.graph.get_sections().get(self.section_number, []))

    def get_sequence_cm_infos(self):
        """
        Returns the ModuleHandles of this section, in order.
        """
        if self._sequence_cms is None:
            cms = self.graph.get_cms()
            self._sequence_cms = [cms[cm_id] for cm_id in self.sequence if cm_id in cms]
        return self._sequence_cms

    def as_dict(self):
        data = {
            'id': self.id,
            'section': self.section_number,
            'name': self.name,
            'summary': self.summary,
            'summaryformat': self.summaryformat,
            'visible': self.visible,
            'availability': self.availability,
            'component': self.component,
            'itemid': self.itemid,
            'sequence': self.sequence,
            'available': self.available,
            'available_info': self.available_info,
            'user_visible': self.user_visible,
        }
        data.update(self._cached_format_options)
        return data
