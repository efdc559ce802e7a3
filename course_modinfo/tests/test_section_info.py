"""
Tests for course_modinfo/section_info.py
"""
from unittest import mock

import ddt
import pytest
from django.test import override_settings

from course_modinfo.exceptions import ProtocolViolation
from course_modinfo.records import USER_ID_NO_DYNAMIC
from course_modinfo.services import IGNORE_AVAILABILITY_RESTRICTIONS, VIEW_HIDDEN_SECTIONS
from course_modinfo.tests.factories import ModinfoTestCase, NumberedFormat


@ddt.ddt
class TestSectionHandle(ModinfoTestCase):
    """
    Tests for section fields, availability and visibility.
    """

    def setUp(self):
        super().setUp()
        self.create_course(num_sections=3)

    def get_section(self, number, user_id=None):
        return self.get_modinfo(user_id).get_section_info(number)

    def section_row(self, number):
        return self.data_source.get_section_row(self.COURSE_ID, number)

    def test_fields(self):
        self.section_row(1).update(name='Week 1', summary='<p>Start</p>', visible=0, availability='{"c":[]}')
        section = self.get_section(1)
        assert section.id == self.section_row(1)['id']
        assert section.section_number == 1
        assert section.name == 'Week 1'
        assert section.summary == '<p>Start</p>'
        assert section.summaryformat == 1
        assert section.visible == 0
        assert section.availability == '{"c":[]}'
        assert not section.is_delegated()
        assert section.get_component_instance() is None

    def test_default_fields(self):
        section = self.get_section(0)
        assert section.name is None
        assert section.summary == ''
        assert section.visible == 1
        assert section.component is None

    def test_available(self):
        section = self.get_section(1)
        assert section.available is True
        assert section.available_info == ''
        assert section.user_visible is True

    def test_availability_memoized(self):
        section = self.get_section(1)
        assert section.available
        assert section.available
        assert section.available_info == ''
        assert self.availability.calls[('section', section.id)] == 1

    @ddt.data(
        ((), False),
        ((IGNORE_AVAILABILITY_RESTRICTIONS,), True),
    )
    @ddt.unpack
    def test_unavailable(self, capabilities, user_visible):
        self.availability.section_rules[self.section_row(1)['id']] = (False, 'Complete week 0 first')
        self.permissions.granted.update(capabilities)
        section = self.get_section(1)
        assert section.available is False
        assert section.available_info == 'Complete week 0 first'
        assert section.user_visible is user_visible

    @override_settings(COURSE_MODINFO_SETTINGS={'ENABLE_AVAILABILITY': False})
    def test_availability_disabled(self):
        self.availability.section_rules[self.section_row(1)['id']] = (False, 'Never')
        assert self.get_section(1).available is True

    def test_no_dynamic_user(self):
        section = self.get_section(1, user_id=USER_ID_NO_DYNAMIC)
        assert section.available is None
        assert section.user_visible is None
        assert self.availability.calls == {}

    @ddt.data(
        ((), False),
        ((VIEW_HIDDEN_SECTIONS,), True),
    )
    @ddt.unpack
    def test_hidden(self, capabilities, user_visible):
        self.section_row(1)['visible'] = 0
        self.permissions.granted.update(capabilities)
        assert self.get_section(1).user_visible is user_visible

    def test_sequence(self):
        first = self.add_module(1)
        second = self.add_module(1, modname='forum')
        self.add_module(0)
        section = self.get_section(1)
        assert section.sequence == [first['id'], second['id']]
        assert [cm.id for cm in section.get_sequence_cm_infos()] == [first['id'], second['id']]
        assert self.get_section(2).sequence == []
        assert self.get_section(2).get_sequence_cm_infos() == []

    def test_as_dict(self):
        cm = self.add_module(1)
        data = self.get_section(1).as_dict()
        assert data['id'] == self.section_row(1)['id']
        assert data['section'] == 1
        assert data['sequence'] == [cm['id']]
        assert data['user_visible'] is True


@ddt.ddt
class TestSectionFormat(ModinfoTestCase):
    """
    Tests for the course format's say in sections.
    """

    def setUp(self):
        super().setUp()
        self.create_course(num_sections=3, format='numbered')

    def get_section(self, number):
        return self.get_modinfo().get_section_info(number)

    def section_id(self, number):
        return self.data_source.get_section_row(self.COURSE_ID, number)['id']

    def test_cached_format_options(self):
        NumberedFormat.option_values = {self.section_id(1): {'collapsed': 1, 'highlight': 'yes'}}
        section = self.get_section(1)
        assert section.format_option('collapsed') == 1
        assert section.format_option('highlight') == 'yes'
        assert self.get_section(0).format_option('collapsed') == 0

    def test_cached_options_are_not_reloaded(self):
        NumberedFormat.option_values = {self.section_id(1): {'collapsed': 1}}
        section = self.get_section(1)
        NumberedFormat.option_values = {self.section_id(1): {'collapsed': 0}}
        assert section.format_option('collapsed') == 1

    def test_uncached_format_option(self):
        section = self.get_section(1)
        NumberedFormat.option_values = {self.section_id(1): {'layout': 'grid'}}
        assert section.format_option('layout') == 'grid'

    @mock.patch('course_modinfo.section_info.log')
    def test_invalid_format_option(self, mock_log):
        assert self.get_section(1).format_option('nonexistent') is None
        assert mock_log.warning.called

    @ddt.data(
        (2, False),
        (3, False),
        (4, True),
    )
    @ddt.unpack
    def test_orphan(self, number, is_orphan):
        self.data_source.add_section(self.COURSE_ID, 3)
        self.data_source.add_section(self.COURSE_ID, 4)
        assert self.get_section(number).is_orphan() is is_orphan

    @ddt.data(
        ((), False),
        ((VIEW_HIDDEN_SECTIONS,), True),
    )
    @ddt.unpack
    def test_orphan_visibility(self, capabilities, user_visible):
        self.data_source.add_section(self.COURSE_ID, 5)
        self.permissions.granted.update(capabilities)
        assert self.get_section(5).user_visible is user_visible

    def test_hook_makes_section_available(self):
        self.availability.section_rules[self.section_id(1)] = (False, 'Locked')
        NumberedFormat.available_hook = staticmethod(lambda section, available, info: (True, ''))
        section = self.get_section(1)
        assert section.available is True
        assert section.available_info == ''

    def test_hook_may_change_explanation(self):
        self.availability.section_rules[self.section_id(1)] = (False, 'Locked')
        NumberedFormat.available_hook = staticmethod(lambda section, available, info: (False, 'Opens soon'))
        assert self.get_section(1).available_info == 'Opens soon'

    def test_hook_cannot_make_section_unavailable(self):
        NumberedFormat.available_hook = staticmethod(lambda section, available, info: (False, 'Nope'))
        with pytest.raises(ProtocolViolation):
            self.get_section(1).available  # pylint: disable=expression-not-assigned

    @override_settings(COURSE_MODINFO_SETTINGS={'STRICT_PROTOCOL': False})
    def test_hook_cannot_make_section_unavailable_lenient(self):
        NumberedFormat.available_hook = staticmethod(lambda section, available, info: (False, 'Nope'))
        section = self.get_section(1)
        assert section.available is True
        assert section.available_info == ''

    def test_hook_sees_its_own_section(self):
        seen = []

        def hook(section, available, info):
            # Reading the section from the hook must not recurse.
            seen.append(section.available)
            return available, info

        NumberedFormat.available_hook = staticmethod(hook)
        assert self.get_section(1).available is True
        assert seen == [True]


class TestDelegatedSection(ModinfoTestCase):
    """
    Tests for sections owned by a course module.
    """

    def setUp(self):
        super().setUp()
        self.create_course(num_sections=2)
        self.subsection = self.add_module(1, modname='subsection', name='Part A')
        self.delegated = self.data_source.add_section(
            self.COURSE_ID, 2, component='mod_subsection', itemid=self.subsection['instance']
        )

    def get_section(self):
        return self.get_modinfo().get_section_info(2)

    def test_delegate(self):
        section = self.get_section()
        assert section.is_delegated()
        assert section.get_component_instance().get_modname('mod_subsection') == 'subsection'
        assert section.get_delegating_cm().id == self.subsection['id']
        assert not section.is_orphan()
        assert section.available
        assert section.user_visible

    def test_uninstalled_component(self):
        del self.module_types['subsection']
        section = self.get_section()
        assert section.get_component_instance() is None
        assert section.get_delegating_cm() is None
        assert section.is_orphan()
        assert section.user_visible is False

    def test_unavailable_parent_module(self):
        self.availability.module_rules[self.subsection['id']] = (False, 'Closed')
        section = self.get_section()
        assert section.available is False
        assert section.user_visible is False

    def test_unavailable_parent_section(self):
        parent_section_id = self.data_source.get_section_row(self.COURSE_ID, 1)['id']
        self.availability.section_rules[parent_section_id] = (False, 'Locked')
        self.permissions.granted.add(IGNORE_AVAILABILITY_RESTRICTIONS)
        section = self.get_section()
        assert section.available is False
        # The parent module is visible thanks to the capability.
        assert section.user_visible is True

    def test_hidden_parent_module(self):
        self.data_source.modules[self.subsection['id']]['visible'] = 0
        section = self.get_section()
        assert section.available is True
        assert section.user_visible is False
