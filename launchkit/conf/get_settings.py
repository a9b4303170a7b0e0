import logging
import os
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from launchkit.conf.settings import LaunchkitSettings

logger = logging.getLogger(__name__)

CONFIG_YAML_ENV_VAR = 'LAUNCHKIT_CONFIG_YAML'

_settings_singleton: Optional[LaunchkitSettings] = None
_config_yaml: Optional[str] = None


class SettingsError(Exception):
    """Raised when the settings file cannot be loaded or is invalid."""


def load_settings_from_yaml(path: str) -> LaunchkitSettings:
    """Load settings from a YAML file, using the localnet preset for missing keys."""
    from launchkit.conf.localnet import SETTINGS as DEFAULT_SETTINGS

    try:
        with open(path, 'r') as fp:
            data = yaml.safe_load(fp)
    except (OSError, yaml.YAMLError) as e:
        raise SettingsError(f'cannot read settings file {path}: {e}') from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise SettingsError(f'settings file {path} must contain a mapping')

    values: dict[str, Any] = DEFAULT_SETTINGS.model_dump()
    values.update(data)
    try:
        return LaunchkitSettings.model_validate(values)
    except (ValidationError, ValueError) as e:
        raise SettingsError(f'invalid settings in {path}: {e}') from e


def get_global_settings() -> LaunchkitSettings:
    """Return the settings for this process, loading them on first use."""
    global _settings_singleton, _config_yaml

    config_yaml = os.environ.get(CONFIG_YAML_ENV_VAR)
    if _settings_singleton is not None:
        if config_yaml != _config_yaml:
            raise SettingsError('settings were already loaded from a different source')
        return _settings_singleton

    if config_yaml:
        logger.info('loading settings from %s', config_yaml)
        _settings_singleton = load_settings_from_yaml(config_yaml)
    else:
        from launchkit.conf.localnet import SETTINGS
        _settings_singleton = SETTINGS
    _config_yaml = config_yaml
    return _settings_singleton


def _reset_global_settings() -> None:
    """Forget the loaded settings. Only meant for tests."""
    global _settings_singleton, _config_yaml
    _settings_singleton = None
    _config_yaml = None
