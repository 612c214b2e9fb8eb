"""
Configuration Management

Loads the controller settings from an optional YAML file and the environment.
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from decouple import UndefinedValueError, config

from .constants import ErrorMessages, KubernetesConstants
from .exceptions import ConfigurationError
from .utils import is_valid_namespace

logger = logging.getLogger(__name__)


@dataclass
class ControllerConfig:
    """Settings shared by every reconcile run"""
    default_namespace: str = ""
    instance_name: str = ""
    controller_name: str = KubernetesConstants.CONTROLLER_NAME
    debug: bool = False
    skip_tls: bool = False


class ConfigManager:
    """Reads the controller configuration file and environment overrides"""

    # section -> {key: expected type}; every section and key is optional
    CONFIG_SCHEMA = {
        'controller': {
            'defaultNamespace': str,
            'instanceName': str,
            'controllerName': str,
        },
        'global': {
            'debug': bool,
            'skip_tls': bool,
        },
    }

    # Environment variables overlaid on top of the file, with the field they set
    ENV_OVERRIDES = {
        'OPERATOR_POLICY_DEFAULT_NAMESPACE': ('default_namespace', str),
        'OPERATOR_POLICY_INSTANCE_NAME': ('instance_name', str),
        'OPERATOR_POLICY_CONTROLLER_NAME': ('controller_name', str),
        'OPERATOR_POLICY_DEBUG': ('debug', bool),
        'OPERATOR_POLICY_SKIP_TLS': ('skip_tls', bool),
    }

    def __init__(self):
        self.config_data: Dict[str, Any] = {}
        self.config_file_path: Optional[str] = None

    def load_config(self, config_path: str) -> Dict[str, Any]:
        """
        Read and check a YAML configuration file

        Args:
            config_path: Location of the file

        Returns:
            Dict: The parsed settings

        Raises:
            ConfigurationError: If the file is missing, unreadable, or doesn't fit CONFIG_SCHEMA
        """
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(ErrorMessages.Config.CONFIG_FILE_NOT_FOUND.format(config_path=config_path))
        if not path.is_file():
            raise ConfigurationError(ErrorMessages.Config.NOT_A_FILE.format(config_path=config_path))

        try:
            data = yaml.safe_load(path.read_text())
        except yaml.YAMLError as e:
            raise ConfigurationError(f"{config_path} is not valid YAML: {e}")
        except OSError as e:
            raise ConfigurationError(f"Could not read {config_path}: {e}")

        data = data or {}
        self._check_schema(data)

        self.config_data = data
        self.config_file_path = config_path
        logger.info(f"Loaded controller configuration from {config_path}")
        return data

    def _check_schema(self, data: Any) -> None:
        if not isinstance(data, dict):
            raise ConfigurationError("config must be a mapping")

        for section, keys in self.CONFIG_SCHEMA.items():
            values = data.get(section)
            if values is None:
                continue
            if not isinstance(values, dict):
                raise ConfigurationError(f"config.{section} must be a dict")

            for key, expected_type in keys.items():
                value = values.get(key)
                if value is not None and not isinstance(value, expected_type):
                    raise ConfigurationError(f"config.{section}.{key} must be a {expected_type.__name__}")

    def get_value(self, key: str, default: Any = None) -> Any:
        """
        Look up a dotted key such as ``controller.defaultNamespace``

        Returns:
            The value, or ``default`` when any part of the path is absent
        """
        value: Any = self.config_data
        for part in key.split('.'):
            if not isinstance(value, dict) or value.get(part) is None:
                return default
            value = value[part]
        return value

    def build_controller_config(self) -> ControllerConfig:
        """
        Build the controller settings from the loaded file and the environment.

        Environment variables win over the file.

        Returns:
            ControllerConfig: The effective settings

        Raises:
            ConfigurationError: If the resulting default namespace is not a valid namespace name
        """
        defaults = ControllerConfig()
        settings = {
            'default_namespace': self.get_value('controller.defaultNamespace', defaults.default_namespace),
            'instance_name': self.get_value('controller.instanceName', defaults.instance_name),
            'controller_name': self.get_value('controller.controllerName', defaults.controller_name),
            'debug': self.get_value('global.debug', defaults.debug),
            'skip_tls': self.get_value('global.skip_tls', defaults.skip_tls),
        }

        for env_name, (field_name, cast) in self.ENV_OVERRIDES.items():
            try:
                settings[field_name] = config(env_name, cast=cast)
                logger.debug(f"Using {env_name} from the environment")
            except UndefinedValueError:
                continue
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_name}: {e}")

        controller_config = ControllerConfig(**{f.name: settings[f.name] for f in fields(ControllerConfig)})

        if controller_config.default_namespace and not is_valid_namespace(controller_config.default_namespace):
            raise ConfigurationError(
                f"Invalid Kubernetes namespace format: {controller_config.default_namespace}"
            )

        return controller_config
