"""
Labels: text and media placed directly on the course page.
"""
from django.utils.html import strip_tags
from django.utils.text import Truncator

from ..records import ModuleDisplayInfo
from . import ModuleType

LABEL_NAME_LENGTH = 50


class Label(ModuleType):
    """
    A label has no page of its own; its intro is rendered in the course
    listing instead of a link.
    """
    name = 'label'
    display_name = 'Text and media area'
    display_name_plural = 'Text and media areas'
    has_view_link = False
    supports_groups = False

    @classmethod
    def get_label_name(cls, instance):
        """
        Returns the instance name, or a shortened plain text intro when it has none.
        """
        name = instance.get('name') or ''
        if name.strip():
            return name
        intro = strip_tags(instance.get('intro') or '').strip()
        if not intro:
            return cls.get_display_name()
        return Truncator(intro).chars(LABEL_NAME_LENGTH)

    @classmethod
    def get_course_module_info(cls, raw_module, data_source):
        instance = data_source.get_instance_record(cls.name, raw_module['instance'])
        if instance is None:
            return None
        return ModuleDisplayInfo(
            name=cls.get_label_name(instance),
            content=instance.get('intro') or '',
            extraclasses='label',
        )

    @classmethod
    def on_view(cls, cm):
        cm.set_custom_cmlist_item(True)
