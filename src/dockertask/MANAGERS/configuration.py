# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Engine configuration: built-in defaults, a properties file, process-wide
properties and per-task overrides, merged in that order of increasing
priority.
"""
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..MODELS.docker_settings import DockerSettings, Family
from ..PARSERS.properties_parser import PropertiesParser

logger = logging.getLogger(__name__)

DOCKER_HOST = "docker.host"

DOCKER_FILE_COMMAND = "docker.file.command"
DOCKER_FILE_SUDO_COMMAND = "docker.file.sudo.command"
DOCKER_FILE_USE_SUDO = "docker.file.use.sudo"
DOCKER_FILE_KEEP_IMAGE = "docker.file.keepimage"

DOCKER_COMPOSE_COMMAND = "docker.compose.command"
DOCKER_COMPOSE_COMMAND_WINDOWS = "docker.compose.command.windows"
DOCKER_COMPOSE_SUDO_COMMAND = "docker.compose.sudo.command"
DOCKER_COMPOSE_USE_SUDO = "docker.compose.use.sudo"
DOCKER_FILE_KEEP = "docker.file.keep"


@dataclass(frozen=True)
class _FamilyKeys:
    """Property keys and defaults of one template family."""

    properties_file: str
    command: str
    command_default: str
    sudo_command: str
    use_sudo: str
    keep: str
    keep_default: str


_DOCKERFILE_KEYS = _FamilyKeys(
    properties_file=os.path.join("config", "scriptengines", "dockerfile.properties"),
    command=DOCKER_FILE_COMMAND,
    command_default="docker",
    sudo_command=DOCKER_FILE_SUDO_COMMAND,
    use_sudo=DOCKER_FILE_USE_SUDO,
    keep=DOCKER_FILE_KEEP_IMAGE,
    keep_default="false",
)

_COMPOSE_KEYS = _FamilyKeys(
    properties_file=os.path.join("config", "scriptengines", "docker-compose.properties"),
    command=DOCKER_COMPOSE_COMMAND,
    command_default="/usr/local/bin/docker-compose",
    sudo_command=DOCKER_COMPOSE_SUDO_COMMAND,
    use_sudo=DOCKER_COMPOSE_USE_SUDO,
    keep=DOCKER_FILE_KEEP,
    keep_default="true",
)


def _is_mac_or_windows() -> bool:
    return sys.platform.startswith("win") or sys.platform == "darwin"


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _env_name(key: str) -> str:
    """``docker.file.use.sudo`` -> ``DOCKER_FILE_USE_SUDO``"""
    return key.upper().replace(".", "_").replace("-", "_")


class EngineConfiguration:
    """
    Configuration of one template family.

    Instances are created explicitly and handed to the lifecycle controller;
    ``reload()`` re-reads the properties file and the process-wide
    properties. Reloading is not synchronised with running lifecycles: the
    last reload wins.
    """

    def __init__(self,
                 family: Family = Family.DOCKERFILE,
                 properties_file: Optional[str] = None,
                 system_properties: Optional[Mapping[str, str]] = None):
        """
        Initializes and loads the configuration.

        :param family: Template family the configuration is for.
        :param properties_file: Properties file path; defaults to
            ``config/scriptengines/<family>.properties`` under the current directory.
        :param system_properties: Process-wide properties, looked up by exact
            key or upper-snake name. Defaults to ``os.environ``.
        """
        self.family = family
        self._keys = _DOCKERFILE_KEYS if family is Family.DOCKERFILE else _COMPOSE_KEYS
        self.properties_file = properties_file or self._keys.properties_file
        self._system_properties = system_properties
        self._file_properties: Dict[str, str] = {}
        self._properties: Dict[str, str] = {}
        self.reload()

    def reload(self):
        """
        Reloads properties from the configuration file and the process-wide properties.
        """
        self._file_properties = PropertiesParser.parse(self.properties_file)
        system = os.environ if self._system_properties is None else self._system_properties

        keys = self._keys
        command_key = keys.command
        command_default = keys.command_default
        if self.family is Family.COMPOSE and _is_mac_or_windows():
            command_key = DOCKER_COMPOSE_COMMAND_WINDOWS
            command_default = "docker-compose"

        defaults = {
            command_key: command_default,
            keys.sudo_command: "/usr/bin/sudo",
            keys.use_sudo: "false",
            keys.keep: keys.keep_default,
            DOCKER_HOST: "",
        }
        properties = {}
        for key, default in defaults.items():
            properties[key] = self._overridden_property(system, key, default)
        self._command_key = command_key
        self._properties = properties

    def _overridden_property(self, system: Mapping[str, str], key: str, default: str) -> str:
        if key in system:
            return system[key]
        if _env_name(key) in system:
            return system[_env_name(key)]
        return self._file_properties.get(key, default)

    def get(self, key: str) -> Optional[str]:
        return self._properties.get(key)

    def settings(self, overrides: Optional[Mapping[str, Any]] = None) -> DockerSettings:
        """
        Returns the effective settings, with ``overrides`` (property keys
        supplied for one task) taking precedence over everything else.
        """
        properties = dict(self._properties)
        for key, value in (overrides or {}).items():
            if key in properties and value is not None:
                logger.debug("Property %s overridden for this task.", key)
                properties[key] = str(value)

        keys = self._keys
        return DockerSettings(
            family=self.family,
            command=properties[self._command_key],
            sudo_command=properties[keys.sudo_command],
            use_sudo=_parse_bool(properties[keys.use_sudo]),
            docker_host=properties[DOCKER_HOST],
            keep_file=_parse_bool(properties[keys.keep]),
        )
