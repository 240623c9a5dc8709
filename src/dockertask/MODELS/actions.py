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
Models for lifecycle actions and the image/container names they act on.
"""
import logging
import re
from enum import Enum
from typing import Iterable, Optional, Tuple

from pydantic import BaseModel

from .bindings import ConfigurationBindings

logger = logging.getLogger(__name__)

ACTIONS_KEY = "docker-actions"
IMAGE_TAG_KEY = "docker-image-tag"
CONTAINER_TAG_KEY = "docker-container-tag"

DEFAULT_ACTIONS = "build,run,stop,rmi"
DEFAULT_IMAGE_NAME = "image"
DEFAULT_CONTAINER_NAME = "container"


class Action(str, Enum):
    """
    One docker operation. DOWN only exists for compose teardown.
    """

    BUILD = "build"
    RUN = "run"
    EXEC = "exec"
    STOP = "stop"
    RM = "rm"
    RMI = "rmi"
    DOWN = "down"


LIFECYCLE_ACTIONS: Tuple[Action, ...] = (
    Action.BUILD,
    Action.RUN,
    Action.EXEC,
    Action.STOP,
    Action.RM,
    Action.RMI,
)

# Forward actions always run in this order, whatever order they were requested in.
FORWARD_ACTIONS: Tuple[Action, ...] = (Action.BUILD, Action.RUN, Action.EXEC)


class ActionSet(frozenset):
    """
    The set of actions requested for one lifecycle.
    """

    @classmethod
    def of(cls, actions: Iterable[Action]) -> "ActionSet":
        return cls(Action(a) for a in actions)

    @classmethod
    def parse(cls, raw: Optional[str]) -> "ActionSet":
        """
        Parses a comma-separated list such as ``"build, run,stop"``.

        Unknown names are logged and dropped; None yields the default set.
        """
        if raw is None:
            raw = DEFAULT_ACTIONS
        names = [name for name in re.split(r"\s*,\s*", raw.strip()) if name]
        actions = []
        for name in names:
            try:
                action = Action(name.lower())
            except ValueError:
                logger.warning("Unknown docker action '%s' ignored.", name)
                continue
            if action not in LIFECYCLE_ACTIONS:
                logger.warning("Docker action '%s' cannot be requested, ignored.", name)
                continue
            actions.append(action)
        return cls(actions)

    @classmethod
    def from_bindings(cls, bindings: ConfigurationBindings) -> "ActionSet":
        return cls.parse(bindings.generic_value(ACTIONS_KEY))

    def __repr__(self) -> str:
        return "ActionSet({})".format(",".join(a.value for a in LIFECYCLE_ACTIONS if a in self))


class TagNames(BaseModel):
    """
    Names given to the image and the container of one task.
    """

    image_tag: str = DEFAULT_IMAGE_NAME
    container_tag: str = DEFAULT_CONTAINER_NAME

    @classmethod
    def from_bindings(cls, bindings: ConfigurationBindings) -> "TagNames":
        """
        Resolves both tags: the defaults, suffixed with ``_<job>t<task>`` when
        the job and task ids are known, unless explicitly overridden.
        """
        image_tag = DEFAULT_IMAGE_NAME
        container_tag = DEFAULT_CONTAINER_NAME

        ids = bindings.job_and_task_ids()
        if ids:
            suffix = "_{}t{}".format(*ids)
            image_tag += suffix
            container_tag += suffix

        image_override = bindings.generic_value(IMAGE_TAG_KEY)
        if image_override is not None:
            image_tag = image_override
        container_override = bindings.generic_value(CONTAINER_TAG_KEY)
        if container_override is not None:
            container_tag = container_override
        return cls(image_tag=image_tag, container_tag=container_tag)
