"""
ModuleHandle: one course module as seen by one user.

A handle starts out with only the cached (BASIC) data. User-dependent
data is computed on first access by ``ensure_dynamic`` and display data by
``ensure_view``; each stage calls the matching module type hook once.
Hooks may read their own handle while it is being built. The state checks
use ``>=`` so that such a read returns the values computed so far instead
of starting the stage again.
"""
import logging
from collections import namedtuple
from enum import IntEnum

from . import config
from .exceptions import ModuleInstanceNotFound, ProtocolViolation
from .records import NOGROUPS, USER_ID_NO_DYNAMIC, expand_module
from .services import (
    ACTIVITY_VISIBILITY,
    IGNORE_AVAILABILITY_RESTRICTIONS,
    MANAGE_ACTIVITIES,
    VIEW_HIDDEN_ACTIVITIES,
    AccessContext,
)

log = logging.getLogger(__name__)

# Fields of the course_modules row, as returned by get_course_module_record.
COURSE_MODULE_FIELDS = (
    'id', 'course', 'module', 'instance', 'section', 'idnumber', 'added', 'score', 'indent', 'visible',
    'visibleoncoursepage', 'visibleold', 'groupmode', 'groupingid', 'completion', 'completiongradeitemnumber',
    'completionview', 'completionexpected', 'completionpassgrade', 'showdescription', 'availability',
    'deletioninprogress', 'downloadcontent', 'lang',
)

COURSE_PAGE_CAPABILITIES = (MANAGE_ACTIVITIES, ACTIVITY_VISIBILITY, VIEW_HIDDEN_ACTIVITIES)

ModuleIcon = namedtuple('ModuleIcon', ['component', 'name', 'url', 'filtericon'])


class ModuleState(IntEnum):
    """
    Materialization stages of a ModuleHandle. A handle only moves forward.
    """
    BASIC = 0
    BUILDING_DYNAMIC = 1
    DYNAMIC = 2
    BUILDING_VIEW = 3
    VIEW = 4


def report_protocol_violation(message):
    """
    Raises ProtocolViolation, or only logs it when STRICT_PROTOCOL is off.
    Returns normally only in the latter case.
    """
    if config.get_setting(config.STRICT_PROTOCOL):
        raise ProtocolViolation(message)
    log.error('Course modinfo protocol violation: %s', message)


class ModuleHandle:
    """
    Live view of one cached course module for the user of its graph.
    """

    def __init__(self, graph, data, module_type):
        self.graph = graph
        self.module_type = module_type
        self._state = ModuleState.BASIC
        data = expand_module(data)

        self.id = data['id']
        self.instance = data['instance']
        self.modname = data['modname']
        self.module = data.get('module', 0)
        self.section_number = data['sectionnum']
        self.section_id = data.get('sectionid', 0)
        self.idnumber = data['idnumber']
        self.added = data.get('added', 0)
        self.score = data['score']
        self.visible = data.get('visible', 1)
        self.visible_on_course_page = data.get('visibleoncoursepage', 1)
        self.visibleold = data.get('visibleold', 0)
        self.groupmode = data['groupmode']
        self.groupingid = data['groupingid']
        self.indent = data['indent']
        self.completion = data['completion']
        self.completiongradeitemnumber = data['completiongradeitemnumber']
        self.completionpassgrade = data.get('completionpassgrade', 0)
        self.completionview = data['completionview']
        self.completionexpected = data['completionexpected']
        self.showdescription = data['showdescription']
        self.availability = data['availability']
        self.deletion_in_progress = data['deletioninprogress']
        self.downloadcontent = data.get('downloadcontent')
        self.lang = data.get('lang')
        self.extra = data['extra']
        self.icon = data['icon']
        self.iconcomponent = data['iconcomponent']

        self._name = data.get('name')
        self._content = data['content']
        self._content_is_formatted = False
        self._extra_classes = data['extraclasses']
        self._icon_url = data['iconurl']
        self._onclick = data['onclick']
        self._customdata = data['customdata']
        self._after_link = ''
        self._after_edit_icons = ''
        self._custom_cmlist_item = False
        self._url = module_type.get_view_url(self.id) if module_type.has_view_link else None

        self._available = None
        self._available_info = None
        self._user_visible = None
        self._user_visible_on_course_page = None
        self._instance_record = None

    def __repr__(self):
        return f'<ModuleHandle {self.modname} {self.id} state={self._state.name}>'

    @property
    def state(self):
        return self._state

    @property
    def course(self):
        return self.graph.course

    @property
    def course_id(self):
        return self.graph.course_id

    @property
    def context(self):
        return AccessContext.for_module(self.id)

    @property
    def course_groupmode(self):
        return self.graph.course.groupmode

    @property
    def course_groupmodeforce(self):
        return self.graph.course.groupmodeforce

    @property
    def effective_groupmode(self):
        """
        Group mode after applying a forced course group mode.
        """
        groupmode = self.groupmode
        if self.graph.course.groupmodeforce:
            groupmode = self.graph.course.groupmode or NOGROUPS
            if groupmode != NOGROUPS and not self.module_type.supports_groups:
                groupmode = NOGROUPS
        return groupmode

    # Stage transitions

    def ensure_dynamic(self):
        """
        Computes availability and visibility for the graph's user and runs
        the module type's ``on_dynamic`` hook.
        """
        if self._state >= ModuleState.BUILDING_DYNAMIC or self.graph.user_id == USER_ID_NO_DYNAMIC:
            return
        self._state = ModuleState.BUILDING_DYNAMIC

        if config.get_setting(config.ENABLE_AVAILABILITY):
            self._available, self._available_info = self.graph.services.availability.is_available(
                self, True, self.graph.user_id, self.graph
            )
        else:
            self._available, self._available_info = True, ''

        if self._available:
            section = self.graph.get_section_info(self.section_number)
            # The section shows its own explanation, so only the flag changes.
            if section is not None and not section.available:
                self._available = False

        self._update_user_visible()
        self._call_module_hook('on_dynamic')
        self._state = ModuleState.DYNAMIC

    def ensure_view(self):
        """
        Runs the module type's ``on_view`` hook after ensuring dynamic data.
        """
        if self._state >= ModuleState.BUILDING_VIEW or self.graph.user_id == USER_ID_NO_DYNAMIC:
            return
        self.ensure_dynamic()
        self._state = ModuleState.BUILDING_VIEW
        self._call_module_hook('on_view')
        self._state = ModuleState.VIEW

    def _call_module_hook(self, hook_name):
        hook = getattr(self.module_type, hook_name, None)
        if hook is not None:
            hook(self)

    def _update_user_visible(self):
        user_id = self.graph.user_id
        if user_id == USER_ID_NO_DYNAMIC:
            return
        self._user_visible = True

        if self.deletion_in_progress:
            self._user_visible = False
            self._user_visible_on_course_page = False
            self._available_info = ''
            return

        permissions = self.graph.services.permissions
        if (
            (not self.visible and not permissions.has_capability(VIEW_HIDDEN_ACTIVITIES, self.context, user_id)) or
            (not self._available and
             not permissions.has_capability(IGNORE_AVAILABILITY_RESTRICTIONS, self.context, user_id))
        ):
            self._user_visible = False

        if self.is_user_access_restricted_by_capability():
            self._user_visible = False
            # Hidden completely, with no explanation shown.
            self._available_info = ''

        self._user_visible_on_course_page = self._user_visible and bool(
            self.visible_on_course_page or
            permissions.has_any_capability(COURSE_PAGE_CAPABILITIES, self.context, user_id)
        )
        # Shown greyed out with its explanation instead of being hidden.
        if not self._user_visible and self.visible_on_course_page and self._available_info:
            self._user_visible_on_course_page = True

    def _check_not_view_only(self, setter_name):
        """
        Returns True if a dynamic-only setter may run in the current state.
        """
        if self._state >= ModuleState.DYNAMIC:
            report_protocol_violation(
                f'{setter_name}() called on course module {self.id} after its dynamic data was built; '
                f'this data may affect other pages as well as view'
            )
            return False
        return True

    # Dynamic data

    @property
    def name(self):
        self.ensure_dynamic()
        return self._name

    @property
    def url(self):
        self.ensure_dynamic()
        return self._url

    @property
    def onclick(self):
        self.ensure_dynamic()
        return self._onclick

    @property
    def customdata(self):
        self.ensure_dynamic()
        return self._customdata

    @property
    def available(self):
        self.ensure_dynamic()
        return self._available

    @property
    def available_info(self):
        self.ensure_dynamic()
        return self._available_info

    @property
    def user_visible(self):
        self.ensure_dynamic()
        return self._user_visible

    def is_visible_on_course_page(self):
        self.ensure_dynamic()
        return self._user_visible_on_course_page

    def has_view(self):
        return self.url is not None

    def get_icon_url(self):
        """
        Returns a ModuleIcon describing the icon to show next to this module.
        """
        self.ensure_dynamic()
        filtericon = False
        if self._icon_url:
            icon = ModuleIcon(None, None, self._icon_url, False)
        elif self.icon:
            if self.icon.startswith('mod/'):
                modname, icon_name = self.icon[len('mod/'):].split('/', 1)
                icon = ModuleIcon(f'mod_{modname}', icon_name, None, False)
            else:
                icon = ModuleIcon(self.iconcomponent or 'core', self.icon, None, False)
        else:
            filtericon = self.module_type.has_monologo_icon
            icon = ModuleIcon(f'mod_{self.modname}', 'monologo', None, False)
        if isinstance(self._customdata, dict):
            filtericon = self._customdata.get('filtericon', filtericon)
        return icon._replace(filtericon=bool(filtericon))

    # View data

    @property
    def content(self):
        self.ensure_view()
        return self._content

    @property
    def content_is_formatted(self):
        self.ensure_view()
        return self._content_is_formatted

    @property
    def extra_classes(self):
        self.ensure_view()
        return self._extra_classes

    @property
    def after_link(self):
        self.ensure_view()
        return self._after_link

    @property
    def after_edit_icons(self):
        self.ensure_view()
        return self._after_edit_icons

    def has_custom_cmlist_item(self):
        self.ensure_view()
        return self._custom_cmlist_item

    # Setters available at any stage

    def set_content(self, content, is_formatted=False):
        self._content = content
        self._content_is_formatted = is_formatted

    def set_extra_classes(self, extra_classes):
        self._extra_classes = extra_classes

    def set_icon_url(self, icon_url):
        self._icon_url = icon_url

    def override_customdata(self, name, value):
        if not isinstance(self._customdata, dict):
            self._customdata = {}
        self._customdata[name] = value

    def set_after_link(self, after_link):
        self._after_link = after_link

    def set_after_edit_icons(self, after_edit_icons):
        self._after_edit_icons = after_edit_icons

    def set_custom_cmlist_item(self, custom_cmlist_item):
        self._custom_cmlist_item = bool(custom_cmlist_item)

    def set_name(self, name):
        # Build dynamic data first so the hook cannot overwrite this name.
        if self._state < ModuleState.BUILDING_DYNAMIC:
            self.ensure_dynamic()
        self._name = name

    # Dynamic-only setters

    def set_on_click(self, onclick):
        if self._check_not_view_only('set_on_click'):
            self._onclick = onclick

    def set_no_view_link(self):
        if self._check_not_view_only('set_no_view_link'):
            self._url = None

    def set_user_visible(self, user_visible):
        if self._check_not_view_only('set_user_visible'):
            self._user_visible = user_visible

    def set_available(self, available, show_availability=False, available_info=''):
        """
        Overrides the availability verdict and recomputes visibility.
        The explanation is kept only when show_availability is set.
        """
        if not self._check_not_view_only('set_available'):
            return
        self._available = available
        self._available_info = available_info if show_availability else ''
        self._update_user_visible()

    # Related data

    def is_stealth(self):
        """
        Returns whether the module is available but not listed on the course page.
        """
        if not self.visible_on_course_page:
            return True
        if self.visible:
            section = self.get_section_info()
            return section is not None and not section.visible
        return False

    def is_of_type_that_can_display(self):
        return self.module_type.can_display

    def is_user_access_restricted_by_capability(self):
        """
        Returns whether the user lacks the module type's view capability,
        or None for graphs without a user.
        """
        user_id = self.graph.user_id
        if user_id == USER_ID_NO_DYNAMIC:
            return None
        permissions = self.graph.services.permissions
        capability = self.module_type.get_view_capability()
        if not permissions.capability_exists(capability):
            return False
        return not permissions.has_capability(capability, self.context, user_id)

    def module_type_name(self, plural=False):
        return self.module_type.get_display_name(plural)

    def get_section_info(self):
        return self.graph.get_section_info_by_id(self.section_id)

    def get_delegated_section_info(self):
        """
        Returns the SectionHandle this module owns, or None.
        """
        return self.graph.get_sections_delegated_by_cm().get(self.id)

    def get_instance_record(self):
        """
        Returns the module instance row, loading it once.

        Raises:
            ModuleInstanceNotFound
        """
        if self._instance_record is None:
            record = self.graph.services.data_source.get_instance_record(self.modname, self.instance)
            if record is None:
                raise ModuleInstanceNotFound(self.modname, self.instance)
            self._instance_record = record
        return self._instance_record

    def get_course_module_record(self, additional_fields=False):
        """
        Returns a dict shaped like the course_modules row of this module.
        With additional_fields, 'name', 'modname' and 'sectionnum' are added.
        """
        values = {
            'course': self.course_id,
            'section': self.section_id,
            'visibleoncoursepage': self.visible_on_course_page,
            'deletioninprogress': self.deletion_in_progress,
        }
        record = {}
        for name in COURSE_MODULE_FIELDS:
            record[name] = values[name] if name in values else getattr(self, name)
        if additional_fields:
            record['name'] = self.name
            record['modname'] = self.modname
            record['sectionnum'] = self.section_number
        return record

    def as_dict(self):
        """
        Returns the basic and materialized data of this handle.
        """
        data = self.get_course_module_record(additional_fields=True)
        data.update({
            'state': self._state.name,
            'url': self.url,
            'available': self.available,
            'available_info': self.available_info,
            'user_visible': self.user_visible,
            'visible_on_course_page': self.is_visible_on_course_page(),
            'content': self.content,
            'extra_classes': self.extra_classes,
            'after_link': self.after_link,
            'customdata': self.customdata,
        })
        return data
