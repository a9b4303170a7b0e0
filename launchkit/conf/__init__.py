from launchkit.conf.get_settings import get_global_settings
from launchkit.conf.settings import LaunchkitSettings

settings = get_global_settings()

__all__ = [
    'LaunchkitSettings',
    'get_global_settings',
    'settings',
]
