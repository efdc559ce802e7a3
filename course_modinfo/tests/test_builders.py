"""
Tests for course_modinfo/builders.py
"""
from unittest import TestCase, mock

import ddt
import pytest

from course_modinfo.builders import (
    CourseCacheBuilder,
    ModuleRecordBuilder,
    SectionCacheBuilder,
    check_course_integrity,
    course_cache_key,
    parse_sequence,
)
from course_modinfo.course_formats import CourseFormat, get_course_format
from course_modinfo.exceptions import LockNotHeld
from course_modinfo.tests.factories import ModinfoTestCase, NumberedFormat


@ddt.ddt
class TestParseSequence(TestCase):
    """
    Tests for parse_sequence.
    """

    @ddt.data(
        ('4,5,6', [4, 5, 6]),
        ('4,,5,', [4, 5]),
        ('', []),
        (None, []),
        ([7, '8'], [7, 8]),
    )
    @ddt.unpack
    def test_parse_sequence(self, sequence, expected):
        assert parse_sequence(sequence) == expected


class TestCheckCourseIntegrity(TestCase):
    """
    Tests for check_course_integrity.
    """

    def test_consistent(self):
        raw_modules = {4: {'id': 4, 'section': 100}, 5: {'id': 5, 'section': 101}}
        sections = [
            {'id': 100, 'section': 0, 'sequence': '4'},
            {'id': 101, 'section': 1, 'sequence': '5'},
        ]
        assert check_course_integrity(2, raw_modules, sections) == []

    def test_problems(self):
        raw_modules = {
            4: {'id': 4, 'section': 100},
            5: {'id': 5, 'section': 100},
            6: {'id': 6, 'section': 101},
        }
        sections = [
            {'id': 100, 'section': 0, 'sequence': '4,9'},
            {'id': 101, 'section': 1, 'sequence': '4,5'},
        ]
        messages = check_course_integrity(2, raw_modules, sections)
        assert len(messages) == 4
        assert 'lists missing course module 9' in messages[0]
        assert 'course module 4 is listed in sections 0 and 1' in messages[1]
        assert 'course module 5 is listed in section 1 but belongs to section id 100' in messages[2]
        assert 'course module 6 is not listed in any section' in messages[3]


@ddt.ddt
class TestModuleRecordBuilder(ModinfoTestCase):
    """
    Tests for the cached module dicts.
    """

    def setUp(self):
        super().setUp()
        self.create_course(num_sections=3)

    def build(self, allow_stealth=False):
        course = self.data_source.get_course(self.COURSE_ID)
        builder = ModuleRecordBuilder(self.data_source, get_course_format(course), allow_stealth=allow_stealth)
        return builder.build(course)

    def test_empty_course(self):
        assert self.build() == {}

    def test_course_order(self):
        late = self.add_module(2)
        first = self.add_module(0)
        second = self.add_module(1)
        third = self.add_module(1)
        modules = self.build()
        assert list(modules) == [first['id'], second['id'], third['id'], late['id']]
        assert modules[second['id']]['sectionnum'] == 1
        assert modules[second['id']]['sectionid'] == second['section']

    def test_compressed(self):
        cm = self.add_module(0, name='Reading')
        data = self.build()[cm['id']]
        assert data['name'] == 'Reading'
        assert 'indent' not in data
        assert 'idnumber' not in data
        assert 'completiongradeitemnumber' not in data

    def test_uninstalled_module_type(self):
        self.add_module(0, modname='quiz')
        kept = self.add_module(0)
        assert list(self.build()) == [kept['id']]

    def test_module_in_wrong_section(self):
        cm = self.add_module(0)
        kept = self.add_module(0)
        self.data_source.modules[cm['id']]['section'] = self.data_source.get_section_row(self.COURSE_ID, 1)['id']
        with mock.patch('course_modinfo.builders.log') as mock_log:
            modules = self.build()
        assert list(modules) == [kept['id']]
        assert mock_log.warning.called

    def test_unlisted_module(self):
        cm = self.add_module(0)
        self.data_source.get_section_row(self.COURSE_ID, 0)['sequence'].remove(cm['id'])
        assert self.build() == {}

    def test_display_info_hook(self):
        cm = self.add_module(0, modname='forum', name='News')
        data = self.build()[cm['id']]
        assert data['name'] == 'News'
        assert data['icon'] == 'icon'
        assert data['iconcomponent'] == 'mod_forum'
        assert data['customdata'] == {'discussion': True}

    def test_legacy_hook(self):
        cm = self.add_module(0, modname='url')
        data = self.build()[cm['id']]
        assert data['name'] == 'Legacy link'
        assert data['extra'] == 'onclick="go()"'
        assert 'content' not in data

    def test_description_without_hook(self):
        shown = self.add_module(0, intro='<p>About</p>', showdescription=1)
        hidden = self.add_module(0, intro='<p>Secret</p>')
        modules = self.build()
        assert modules[shown['id']]['content'] == '<p>About</p>'
        assert 'content' not in modules[hidden['id']]

    def test_label_name_from_intro(self):
        cm = self.add_module(0, modname='label', name='', intro='<p>Hello <b>world</b></p>')
        data = self.build()[cm['id']]
        assert data['name'] == 'Hello world'
        assert data['content'] == '<p>Hello <b>world</b></p>'
        assert data['extraclasses'] == 'label'

    def test_reuses_cached_modules(self):
        cm = self.add_module(0)
        course = self.data_source.get_course(self.COURSE_ID)
        builder = ModuleRecordBuilder(self.data_source, get_course_format(course))
        modules = builder.build(course, cached_modules={cm['id']: {'id': cm['id'], 'name': 'cached'}})
        assert modules[cm['id']]['name'] == 'cached'

    @ddt.data(
        # allow_stealth, section number, visible, visibleoncoursepage, stored value
        (True, 0, 1, 0, 0),
        (True, 1, 1, 0, 0),
        (False, 1, 1, 0, 1),
        (True, 1, 0, 0, 1),
        (True, 1, 1, 1, 1),
    )
    @ddt.unpack
    def test_stealth(self, allow_stealth, section_number, visible, on_course_page, expected):
        cm = self.add_module(section_number, visible=visible, visibleoncoursepage=on_course_page)
        assert self.build(allow_stealth)[cm['id']]['visibleoncoursepage'] == expected

    def test_stealth_in_hidden_section(self):
        self.data_source.get_section_row(self.COURSE_ID, 1)['visible'] = 0
        cm = self.add_module(1, visibleoncoursepage=0)
        assert self.build(allow_stealth=True)[cm['id']]['visibleoncoursepage'] == 1


class TestSectionCacheBuilder(ModinfoTestCase):
    """
    Tests for the cached section dicts.
    """

    def build(self):
        course = self.data_source.get_course(self.COURSE_ID)
        return SectionCacheBuilder(self.data_source, get_course_format(course)).build(course)

    def test_base_format(self):
        self.create_course(num_sections=2)
        self.data_source.get_section_row(self.COURSE_ID, 1).update(name='Week 1', visible=0)
        sections = self.build()
        first, second = sections.values()
        assert first == {'id': first['id'], 'section': 0}
        assert second['name'] == 'Week 1'
        assert second['visible'] == 0
        assert 'sequence' not in second

    def test_cached_format_options(self):
        self.create_course(num_sections=2, format='numbered')
        second_id = self.data_source.get_section_row(self.COURSE_ID, 1)['id']
        NumberedFormat.option_values = {second_id: {'collapsed': 1, 'layout': 'grid'}}
        first, second = self.build().values()
        assert 'collapsed' not in first
        assert first['highlight'] == ''
        assert second['collapsed'] == 1
        assert 'layout' not in second

    def test_reuses_cached_sections(self):
        self.create_course(num_sections=2)
        section_id = self.data_source.get_section_row(self.COURSE_ID, 0)['id']
        course = self.data_source.get_course(self.COURSE_ID)
        builder = SectionCacheBuilder(self.data_source, CourseFormat(course))
        sections = builder.build(course, cached_sections={section_id: {'id': section_id, 'section': 0, 'name': 'Old'}})
        assert sections[section_id]['name'] == 'Old'


class TestCourseCacheBuilder(ModinfoTestCase):
    """
    Tests for building and storing whole course payloads.
    """

    def setUp(self):
        super().setUp()
        self.create_course()
        self.cm = self.add_module(0)
        self.other_cm = self.add_module(1)
        self.builder = CourseCacheBuilder(self.store, self.data_source)
        self.key = course_cache_key(self.COURSE_ID)

    @mock.patch('course_modinfo.builders.monitor_course_cache_rebuild')
    def test_build_and_store(self, mock_monitor):
        course = self.data_source.get_course(self.COURSE_ID)
        record = self.builder.build_course_cache(course)
        assert record.version == 1
        assert list(record.modules) == [self.cm['id'], self.other_cm['id']]
        assert len(record.sections) == 2
        assert record.course_fields['shortname'] == 'C2'
        assert self.store.get_versioned(self.key, 1) == record
        assert not self.store.check_lock_state(self.key)
        mock_monitor.assert_called_once_with(self.COURSE_ID, 'miss', partial=False)

    def test_uses_stored_record(self):
        course = self.data_source.get_course(self.COURSE_ID)
        first = self.builder.build_course_cache(course)
        second = self.builder.build_course_cache(course)
        assert second == first
        assert self.data_source.calls['get_course_modules'] == 1

    def test_force(self):
        course = self.data_source.get_course(self.COURSE_ID)
        self.builder.build_course_cache(course)
        self.builder.build_course_cache(course, force=True)
        assert self.data_source.calls['get_course_modules'] == 2

    def test_uses_latest_cacherev(self):
        course = self.data_source.get_course(self.COURSE_ID)
        self.data_source.increment_cacherev(self.COURSE_ID)
        record = self.builder.build_course_cache(course)
        assert record.version == 2

    def test_inner_build_requires_lock(self):
        course = self.data_source.get_course(self.COURSE_ID)
        with pytest.raises(LockNotHeld):
            self.builder.inner_build_course_cache(course)

    def test_partial_rebuild(self):
        course = self.data_source.get_course(self.COURSE_ID)
        record = self.builder.build_course_cache(course)
        self.data_source.instances[('page', self.cm['instance'])]['name'] = 'Renamed'
        self.data_source.instances[('page', self.other_cm['instance'])]['name'] = 'Also renamed'
        self.store.set_versioned(self.key, record.version, record.without_modules([self.cm['id']]))

        rebuilt = self.builder.build_course_cache(course, partial_rebuild=True)
        assert not rebuilt.is_stale
        assert rebuilt.modules[self.cm['id']]['name'] == 'Renamed'
        assert rebuilt.modules[self.other_cm['id']]['name'] == record.modules[self.other_cm['id']]['name']
        assert list(rebuilt.modules) == [self.cm['id'], self.other_cm['id']]

    def test_builds_above_invalidated_floor(self):
        course = self.data_source.get_course(self.COURSE_ID)
        self.builder.build_course_cache(course)
        assert self.store.invalidate(self.key) == 2

        record = self.builder.build_course_cache(course)
        assert record.version == 2
        assert self.store.get_versioned(self.key, course.cacherev) == record
        self.builder.build_course_cache(course)
        assert self.data_source.calls['get_course_modules'] == 2

    def test_failed_build_releases_lock(self):
        course = self.data_source.get_course(self.COURSE_ID)
        with mock.patch.object(self.data_source, 'get_course_modules', side_effect=IOError('database gone')):
            with pytest.raises(IOError):
                self.builder.build_course_cache(course)
        assert not self.store.check_lock_state(self.key)
        assert self.store.peek(self.key) is None
        # The next attempt is not blocked by the failed one.
        assert self.builder.build_course_cache(course).version == 1
