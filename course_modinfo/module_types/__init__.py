"""
Module type plugins.

Each activity module type (forum, quiz, label, ...) registers a
``ModuleType`` subclass under the ``course_modinfo.module_type`` entry
point namespace, using the module type name as the entry point name.

A module type may define any of these classmethod hooks; a missing hook
is simply skipped:

    get_course_module_info(raw_module, data_source)
        Called while the course cache is built. Returns a
        ModuleDisplayInfo, a legacy dict with 'name', 'icon',
        'iconcomponent' and 'extra' keys, or None.

    on_dynamic(cm)
        Called once per ModuleHandle when user-dependent data is computed.
        May call any of the handle's setters.

    on_view(cm)
        Called once per ModuleHandle when display data is computed. Must
        not call the dynamic-only setters.
"""
import logging
import re

from edx_django_utils.plugins import PluginError, PluginManager

from ..exceptions import InvalidModuleName

log = logging.getLogger(__name__)

MODULE_NAME_PATTERN = re.compile(r'^[a-z][a-z0-9]*$')


class ModuleType:
    """
    Base class for module type plugins, holding the feature flags the
    course cache consults.
    """
    name = None
    display_name = None
    display_name_plural = None

    # False for types that have no page of their own (e.g. labels).
    has_view_link = True
    supports_groups = True
    # False for types that are never listed on the course page.
    can_display = True
    # True for types that own a delegated section.
    delegates_section = False
    has_monologo_icon = True

    @classmethod
    def get_display_name(cls, plural=False):
        if plural:
            return cls.display_name_plural or cls.get_display_name()
        return cls.display_name or cls.name

    @classmethod
    def get_view_capability(cls):
        return f'mod/{cls.name}:view'

    @classmethod
    def get_view_url(cls, cm_id):
        return f'/mod/{cls.name}/view.php?id={cm_id}'


class ModuleTypePluginManager(PluginManager):
    """
    Manager for all of the installed module types.
    """
    NAMESPACE = 'course_modinfo.module_type'

    @classmethod
    def get_module_types(cls):
        """
        Returns a dict of module type name to ModuleType class.
        """
        return dict(cls.get_available_plugins())


def validate_module_name(modname):
    """
    Raises InvalidModuleName if modname is not a well formed module type name.
    """
    if not modname or not MODULE_NAME_PATTERN.match(modname):
        raise InvalidModuleName(modname)


def get_module_type(modname):
    """
    Returns the ModuleType class for modname, or None if it is not installed.
    """
    try:
        return ModuleTypePluginManager.get_plugin(modname)
    except PluginError:
        log.debug('Module type %r is not installed.', modname)
        return None


def get_module_type_names(plural=False):
    """
    Returns a dict of installed module type name to display name.
    """
    return {
        name: module_type.get_display_name(plural)
        for name, module_type in ModuleTypePluginManager.get_module_types().items()
    }
