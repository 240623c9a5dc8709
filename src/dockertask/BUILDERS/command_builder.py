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
Builders for the docker and docker-compose command lines of each action.
"""
from typing import List, Optional, Sequence

from ..MODELS.actions import Action, TagNames
from ..MODELS.bindings import ConfigurationBindings
from ..MODELS.docker_settings import DockerSettings, Family
from ..PARSERS.option_parser import ACTION_OPTION_KEYS, CommandlineOptionsExtractor, OptionType

IMAGE_TAG_OPTION = "-t"
CONTAINER_NAME_OPTION = "--name"
BUILD_CONTEXT = "."

NO_ANSI_OPTION = "--no-ansi"
FILENAME_OPTION = "-f"
UP_ARGUMENT = "up"
VOLUMES_OPTION = "--volumes"
VERSION_OPTION = "--version"


class CommandBuilder:
    """
    Assembles the argument list of one docker invocation.

    Every command starts with the sudo command (only when configured) and the
    docker binary. Custom options go to a fixed position per action and are
    never reordered; no token is quoted, each is handed to the process
    launcher as a separate argument.
    """
    def __init__(self,
                 settings: DockerSettings,
                 extractor: Optional[CommandlineOptionsExtractor] = None):
        """
        Initializes the CommandBuilder.

        :param settings: Resolved settings of the template family.
        :param extractor: Extractor used by :meth:`for_bindings`.
        """
        self.settings = settings
        self.extractor = extractor or CommandlineOptionsExtractor()

    def build(self,
              action: Action,
              tags: TagNames,
              custom_options: Sequence[str] = (),
              general_options: Sequence[str] = ()) -> List[str]:
        """
        Creates the command for ``action``.

        :param action: The action to run.
        :param tags: Image and container names.
        :param custom_options: Options specific to the action (``up`` options
            in compose mode, the command to execute for ``exec``).
        :param general_options: Compose options placed before ``-f``.
        :return: The command as a list of arguments.
        """
        action = Action(action)
        command = self._base_command()

        if self.settings.family is Family.COMPOSE:
            if action is Action.BUILD:
                command += [NO_ANSI_OPTION, *general_options, FILENAME_OPTION,
                            Family.COMPOSE.file_name, UP_ARGUMENT, *custom_options]
                return command
            if action in (Action.DOWN, Action.STOP):
                command += [NO_ANSI_OPTION, Action.DOWN.value, VOLUMES_OPTION]
                return command
            raise ValueError(f"Action '{action.value}' is not available for compose templates")

        if action is Action.BUILD:
            command += [action.value, *custom_options, IMAGE_TAG_OPTION, tags.image_tag, BUILD_CONTEXT]
        elif action is Action.RUN:
            command += [action.value, *custom_options, CONTAINER_NAME_OPTION, tags.container_tag, tags.image_tag]
        elif action is Action.EXEC:
            command += [action.value, tags.container_tag, *custom_options]
        elif action in (Action.STOP, Action.RM):
            command += [action.value, *custom_options, tags.container_tag]
        elif action is Action.RMI:
            command += [action.value, *custom_options, tags.image_tag]
        else:
            raise ValueError(f"Action '{action.value}' is not available for Dockerfile templates")
        return command

    def for_bindings(self,
                     action: Action,
                     tags: TagNames,
                     bindings: ConfigurationBindings) -> List[str]:
        """
        Creates the command for ``action`` with the custom options found in
        the task bindings.
        """
        action = Action(action)
        if self.settings.family is Family.COMPOSE:
            if action is Action.BUILD:
                options = self.extractor.compose_options(bindings)
                return self.build(action, tags,
                                  custom_options=options[OptionType.UP_OPTION],
                                  general_options=options[OptionType.GENERAL_OPTION])
            return self.build(action, tags)

        if action not in ACTION_OPTION_KEYS:
            return self.build(action, tags)
        custom_options = self.extractor.extract(bindings, ACTION_OPTION_KEYS[action])
        return self.build(action, tags, custom_options)

    def version_command(self) -> List[str]:
        """Command printing the version of the docker binary."""
        return self._base_command() + [VERSION_OPTION]

    def _base_command(self) -> List[str]:
        command = []
        if self.settings.use_sudo:
            command.append(self.settings.sudo_command)
        command.append(self.settings.command)
        return command
