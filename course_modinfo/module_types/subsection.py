"""
Subsections: modules whose content is a delegated course section.
"""
from ..services import VIEW_HIDDEN_SECTIONS
from . import ModuleType

SUBSECTION_COMPONENT = 'mod_subsection'


class Subsection(ModuleType):
    """
    A subsection owns one section delegated to ``mod_subsection`` with
    the subsection instance id as item id.
    """
    name = 'subsection'
    display_name = 'Subsection'
    display_name_plural = 'Subsections'
    has_view_link = False
    supports_groups = False
    delegates_section = True

    @classmethod
    def get_course_module_info(cls, raw_module, data_source):
        instance = data_source.get_instance_record(cls.name, raw_module['instance'])
        if instance is None:
            return None
        return {'name': instance.get('name')}

    @classmethod
    def on_dynamic(cls, cm):
        section = cm.get_delegated_section_info()
        if section is not None and not section.visible:
            cm.set_user_visible(cm.user_visible and cm.graph.has_capability_in_course(VIEW_HIDDEN_SECTIONS))

    @classmethod
    def on_view(cls, cm):
        cm.set_custom_cmlist_item(True)
