"""
Components that own delegated sections.

A section whose ``component`` is set belongs to that component rather
than to the course outline. Components register a ``SectionDelegate``
subclass under the ``course_modinfo.section_delegate`` entry point
namespace with the component name (e.g. ``mod_subsection``) as the entry
point name.
"""
import logging

from edx_django_utils.plugins import PluginError, PluginManager

from .module_types import get_module_type

log = logging.getLogger(__name__)

MODULE_COMPONENT_PREFIX = 'mod_'


class SectionDelegate:
    """
    Base class for section delegates.
    """

    def __init__(self, section):
        self.section = section

    @classmethod
    def is_enabled(cls, component):  # pylint: disable=unused-argument
        return True


class ModuleSectionDelegate(SectionDelegate):
    """
    Delegate for sections owned by a course module. The section's item id
    is the instance id of the owning module.
    """

    @classmethod
    def get_modname(cls, component):
        return component[len(MODULE_COMPONENT_PREFIX):]

    @classmethod
    def is_enabled(cls, component):
        module_type = get_module_type(cls.get_modname(component))
        return module_type is not None and module_type.delegates_section

    def get_cm(self):
        """
        Returns the ModuleHandle owning the section, or None.
        """
        instances = self.section.graph.get_instances_of(self.get_modname(self.section.component))
        return instances.get(self.section.itemid)


class SectionDelegatePluginManager(PluginManager):
    """
    Manager for all of the installed section delegates.
    """
    NAMESPACE = 'course_modinfo.section_delegate'


def get_section_delegate(section):
    """
    Returns a delegate instance for a delegated section, or None when the
    owning component is missing or disabled.
    """
    if not section.component:
        return None
    try:
        delegate_class = SectionDelegatePluginManager.get_plugin(section.component)
    except PluginError:
        log.info('No section delegate installed for component %r.', section.component)
        return None
    if not delegate_class.is_enabled(section.component):
        return None
    return delegate_class(section)
