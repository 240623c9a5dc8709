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
Extraction of per-action command line options from the task bindings.
"""
import logging
import re
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from ..MODELS.actions import Action
from ..MODELS.bindings import GENERIC_INFORMATION_KEY, ConfigurationBindings

logger = logging.getLogger(__name__)

DEFAULT_SPLIT_TOKEN = " "

# Dockerfile family
DOCKER_FILE_SPLIT_KEY = "docker-file-options-split-regex"
DOCKER_BUILD_OPTIONS_KEY = "docker-build-options"
DOCKER_RUN_OPTIONS_KEY = "docker-run-options"
DOCKER_EXEC_COMMAND_KEY = "docker-exec-command"
DOCKER_STOP_OPTIONS_KEY = "docker-stop-options"
DOCKER_RM_OPTIONS_KEY = "docker-rm-options"
DOCKER_RMI_OPTIONS_KEY = "docker-rmi-options"

# Compose family
DOCKER_COMPOSE_SPLIT_KEY = "docker-compose-options-split-regex"
DOCKER_COMPOSE_OPTIONS_KEY = "docker-compose-options"
DOCKER_COMPOSE_UP_OPTIONS_KEY = "docker-compose-up-options"

ACTION_OPTION_KEYS: Dict[Action, str] = {
    Action.BUILD: DOCKER_BUILD_OPTIONS_KEY,
    Action.RUN: DOCKER_RUN_OPTIONS_KEY,
    Action.EXEC: DOCKER_EXEC_COMMAND_KEY,
    Action.STOP: DOCKER_STOP_OPTIONS_KEY,
    Action.RM: DOCKER_RM_OPTIONS_KEY,
    Action.RMI: DOCKER_RMI_OPTIONS_KEY,
}


class OptionType(str, Enum):
    """
    Position of a compose option relative to the ``up`` subcommand.
    """
    GENERAL_OPTION = "general"
    UP_OPTION = "up"


class CommandlineOptionsExtractor:
    """
    Reads raw option strings out of the generic information binding and
    splits them into argument tokens.

    Nothing here ever raises: missing or mis-shaped data means no options.
    """

    def extract(self,
                bindings: Union[ConfigurationBindings, Mapping[str, Any], None],
                action_key: str,
                split_key: Optional[str] = DOCKER_FILE_SPLIT_KEY) -> List[str]:
        """
        Returns the options stored under ``action_key``, in order.

        :param bindings: The task bindings.
        :param action_key: Generic information key holding the raw options.
        :param split_key: Generic information key holding the split token;
            a single space is used when it is absent.
        """
        generic_information = self._generic_information(bindings)

        raw = generic_information.get(action_key)
        if raw is None:
            return []
        if not isinstance(raw, str):
            logger.warning("Options '%s' are not a string, ignoring them.", action_key)
            return []

        split_token = DEFAULT_SPLIT_TOKEN
        if split_key and isinstance(generic_information.get(split_key), str) and generic_information[split_key]:
            split_token = generic_information[split_key]

        return self.split(raw, split_token)

    def compose_options(self,
                        bindings: Union[ConfigurationBindings, Mapping[str, Any], None]
                        ) -> Dict[OptionType, List[str]]:
        """
        Returns the general compose options and the ``up`` options.
        """
        return {
            OptionType.GENERAL_OPTION: self.extract(bindings, DOCKER_COMPOSE_OPTIONS_KEY, DOCKER_COMPOSE_SPLIT_KEY),
            OptionType.UP_OPTION: self.extract(bindings, DOCKER_COMPOSE_UP_OPTIONS_KEY, DOCKER_COMPOSE_SPLIT_KEY),
        }

    @staticmethod
    def split(raw: str, split_token: str = DEFAULT_SPLIT_TOKEN) -> List[str]:
        """
        Splits ``raw`` on ``split_token``, a regular expression. An invalid
        expression is used literally. Empty tokens are dropped.
        """
        try:
            tokens = re.split(split_token, raw)
        except re.error as e:
            logger.warning("Invalid split expression '%s' (%s), splitting on it literally.", split_token, e)
            tokens = raw.split(split_token)
        return [token for token in tokens if token]

    @staticmethod
    def _generic_information(bindings) -> Dict[str, Any]:
        if isinstance(bindings, ConfigurationBindings):
            view = bindings
        else:
            view = ConfigurationBindings(bindings)
        if GENERIC_INFORMATION_KEY not in view or not isinstance(view.raw(GENERIC_INFORMATION_KEY), Mapping):
            logger.warning("Generic Information could not be retrieved. "
                           "Docker command options could not be extracted.")
            return {}
        return view.generic_information
