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
Errors raised by a task lifecycle.

Only these ever escape LifecycleController.execute; failures during
cleanup are logged instead.
"""
from typing import List, Optional


class LifecycleError(Exception):
    """Base class for lifecycle failures."""

    exit_code: Optional[int] = None


class RenderError(LifecycleError):
    """The template could not be rendered or written to the working directory."""


class LaunchError(LifecycleError):
    """
    An action's process could not be started (missing binary, permissions...).
    """

    def __init__(self, action: str, command: List[str], cause: Optional[BaseException] = None):
        self.action = action
        self.command = list(command)
        self.cause = cause
        super().__init__(f"Failed to launch docker {action}: {command[0] if command else '?'} ({cause})")


class NonZeroExitError(LifecycleError):
    """An action's process exited with a nonzero status."""

    def __init__(self, action: str, exit_code: int):
        self.action = action
        self.exit_code = exit_code
        super().__init__(f"Docker {action} failed with exit code {exit_code}")
