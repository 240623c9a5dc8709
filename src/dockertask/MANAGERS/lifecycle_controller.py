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
Lifecycle of one docker task: render the template, run the requested
actions in order, and tear down whatever was created, whatever happens.
"""
import logging
import os
import tempfile
import threading
from enum import Enum
from typing import IO, Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..BUILDERS.command_builder import CommandBuilder
from ..errors import LaunchError, NonZeroExitError, RenderError
from ..MODELS.actions import FORWARD_ACTIONS, Action, ActionSet, TagNames
from ..MODELS.bindings import ConfigurationBindings
from ..MODELS.docker_settings import DockerSettings, Family
from ..RUNNERS.process_runner import ProcessRunner
from ..UTILS.file_writer import delete_file, force_file_to_disk
from ..UTILS.string_interpolation import EnvironmentInterpolator
from .cleanup_guard import CleanupGuard
from .configuration import EngineConfiguration

logger = logging.getLogger(__name__)

DOCKER_HOST_VARIABLE = "DOCKER_HOST"

PACKAGE_LOGGER = "dockertask"

# Executions currently holding the package logger at INFO, when its level was unset.
_level_lock = threading.Lock()
_level_holders = 0

# Compose templates are brought up, then taken down.
COMPOSE_ACTIONS = ActionSet.of([Action.BUILD, Action.STOP])


class LifecycleState(str, Enum):
    """
    States of a lifecycle, in the order they can be visited.
    """
    INIT = "init"
    RESOLVED = "resolved"
    BUILDING = "building"
    SKIP_BUILD = "skip_build"
    RUNNING = "running"
    SKIP_RUN = "skip_run"
    EXECUTING = "executing"
    SKIP_EXEC = "skip_exec"
    CLEANUP = "cleanup"
    TERMINAL = "terminal"


# Forward action -> (state when it runs, state when it is skipped)
_FORWARD_STATES: Dict[Action, Tuple[LifecycleState, LifecycleState]] = {
    Action.BUILD: (LifecycleState.BUILDING, LifecycleState.SKIP_BUILD),
    Action.RUN: (LifecycleState.RUNNING, LifecycleState.SKIP_RUN),
    Action.EXEC: (LifecycleState.EXECUTING, LifecycleState.SKIP_EXEC),
}


def _hold_info_level():
    """
    Lowers an unset package logger to INFO until the matching
    :func:`_release_info_level`. An explicit level is left alone.
    """
    global _level_holders
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    with _level_lock:
        if _level_holders == 0:
            if package_logger.level != logging.NOTSET:
                return False
            package_logger.setLevel(logging.INFO)
        _level_holders += 1
        return True


def _release_info_level():
    global _level_holders
    with _level_lock:
        _level_holders -= 1
        if _level_holders == 0:
            logging.getLogger(PACKAGE_LOGGER).setLevel(logging.NOTSET)


class _ThreadFilter(logging.Filter):
    """Lets through records emitted by one thread only."""

    def __init__(self, thread_id: int):
        super().__init__()
        self.thread_id = thread_id

    def filter(self, record: logging.LogRecord) -> bool:
        return record.thread == self.thread_id


class LifecycleController:
    """
    Drives the docker lifecycle of one task at a time.

    A call to :meth:`execute` goes through
    INIT -> RESOLVED -> BUILDING|SKIP_BUILD -> RUNNING|SKIP_RUN
    -> EXECUTING|SKIP_EXEC -> CLEANUP -> TERMINAL. A failing forward action
    jumps straight to CLEANUP, which always runs exactly once.
    """

    def __init__(self,
                 configuration: EngineConfiguration,
                 runner_factory: Callable[[str], ProcessRunner] = ProcessRunner):
        """
        Initializes the controller.

        :param configuration: Engine configuration; its family decides
            between the Dockerfile and the compose lifecycle.
        :param runner_factory: Creates the runner of each action, given the
            action name.
        """
        self.configuration = configuration
        self.family = configuration.family
        self.runner_factory = runner_factory
        self._busy = threading.Lock()
        self._holds_level = False
        self._reset()

    def _reset(self):
        self.state = LifecycleState.INIT
        self.history: List[LifecycleState] = [LifecycleState.INIT]
        self.actions = ActionSet()
        self.tags = TagNames()
        self.settings: Optional[DockerSettings] = None
        self.environment: Dict[str, str] = {}
        self.working_dir: Optional[str] = None
        self.rendered_file: Optional[str] = None
        self.image_created = False
        self.container_started = False
        self.exit_code: Optional[int] = None
        self._created_working_dir = False
        self._builder: Optional[CommandBuilder] = None
        self._bindings = ConfigurationBindings()
        self._streams: Tuple[Optional[IO[Any]], Optional[IO[Any]], Optional[IO[Any]]] = (None, None, None)
        self._runner: Optional[ProcessRunner] = None
        self._cancelled = threading.Event()
        self._cleanup_lock = threading.Lock()
        self._cleaned_up = False

    def execute(self,
                template: str,
                bindings: Optional[Mapping[str, Any]] = None,
                stdin: Optional[IO[Any]] = None,
                stdout: Optional[IO[Any]] = None,
                stderr: Optional[IO[Any]] = None) -> Optional[int]:
        """
        Runs the whole lifecycle of one task.

        :param template: Dockerfile or compose text, with $VAR tokens.
        :param bindings: Task configuration bindings.
        :param stdin: Reader fed to the actions running a container (run,
            exec, compose up).
        :param stdout: Writer receiving the output of every action.
        :param stderr: Writer receiving errors and lifecycle log messages.
        :return: Exit code of the last forward action (0 when none ran), or
            None when the lifecycle was interrupted or cancelled.
        :raises RenderError: If the template could not be materialised.
        :raises LaunchError: If an action's process could not be started.
        :raises NonZeroExitError: If an action's process failed.
        """
        if not self._busy.acquire(blocking=False):
            raise RuntimeError("A lifecycle is already running on this controller")
        try:
            self._reset()
            self._bindings = ConfigurationBindings(bindings)
            self._streams = (stdin, stdout, stderr)
            log_handler = self._attach_log_handler(stderr)
            guard = CleanupGuard(self._cleanup)
            try:
                try:
                    self._resolve(template)
                    guard.install()
                    return self._run_forward_actions()
                except KeyboardInterrupt:
                    logger.info("Container execution interrupted.")
                    return None
                finally:
                    self._cleanup()
                    guard.remove()
            finally:
                self._detach_log_handler(log_handler)
        finally:
            self._busy.release()

    def cancel(self):
        """
        Stops the running lifecycle from another thread: the running action
        is terminated and the lifecycle goes straight to cleanup.
        """
        logger.info("Cancelling lifecycle.")
        self._cancelled.set()
        runner = self._runner
        if runner is not None:
            runner.destroy()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _transition(self, state: LifecycleState):
        logger.debug("Lifecycle %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _resolve(self, template: str):
        """
        Resolves actions, tags, settings and the working directory, then
        writes the rendered template.
        """
        bindings = self._bindings
        if self.family is Family.COMPOSE:
            self.actions = COMPOSE_ACTIONS
        else:
            self.actions = ActionSet.from_bindings(bindings)
            self.tags = TagNames.from_bindings(bindings)
        self.settings = self.configuration.settings(bindings.generic_information)
        self._builder = CommandBuilder(self.settings)
        logger.debug("Actions %r, image %s, container %s",
                     self.actions, self.tags.image_tag, self.tags.container_tag)

        self.environment = bindings.string_entries()
        self.environment[DOCKER_HOST_VARIABLE] = self.settings.docker_host

        scratch_dir = bindings.scratch_dir
        try:
            if scratch_dir:
                os.makedirs(scratch_dir, exist_ok=True)
                self.working_dir = os.path.abspath(scratch_dir)
            else:
                self.working_dir = tempfile.mkdtemp(prefix="dockertask-")
                self._created_working_dir = True
        except OSError as e:
            raise RenderError(f"Could not prepare working directory: {e}") from e

        if not isinstance(template, str):
            raise RenderError(f"Template must be text, got {type(template).__name__}")
        unresolved = EnvironmentInterpolator.unresolved(template, self.environment)
        if unresolved:
            logger.debug("Tokens left for docker to resolve: %s", ", ".join(sorted(unresolved)))
        rendered = EnvironmentInterpolator.interpolate(template, self.environment)

        # Known before writing, so that a partial write is still cleaned up.
        self.rendered_file = os.path.join(self.working_dir, self.family.file_name)
        force_file_to_disk(rendered, self.rendered_file)
        logger.info("Docker file %s created.", self.rendered_file)
        self._transition(LifecycleState.RESOLVED)

    def _run_forward_actions(self) -> Optional[int]:
        exit_code = 0
        for action in FORWARD_ACTIONS:
            run_state, skip_state = _FORWARD_STATES[action]
            if self.cancelled:
                logger.info("Lifecycle cancelled before %s.", action.value)
                return None
            if action not in self.actions:
                self._transition(skip_state)
                # Assume the image / container already exists on this machine.
                self._mark_created(action)
                continue

            self._transition(run_state)
            exit_code = self._run_action(action)
            if self.cancelled:
                logger.info("Lifecycle cancelled during %s.", action.value)
                return None
            if exit_code != 0:
                self.exit_code = exit_code
                raise NonZeroExitError(action.value, exit_code)
        self.exit_code = exit_code
        return exit_code

    def _run_action(self, action: Action) -> int:
        command = self._builder.for_bindings(action, self.tags, self._bindings)
        stdin, stdout, stderr = self._streams
        if action not in self._input_actions():
            stdin = None
        runner = self.runner_factory(action.value)
        self._runner = runner
        if self.cancelled:
            # cancel() may have missed the runner published above.
            self._runner = None
            return 0
        try:
            exit_code = runner.run(command, self.working_dir, self.environment, stdin, stdout, stderr)
        except LaunchError:
            self._runner = None
            raise
        except BaseException:
            # Interrupted while the process was alive: it did start.
            self._mark_created(action)
            raise
        self._runner = None
        self._mark_created(action)
        return exit_code

    def _input_actions(self) -> Tuple[Action, ...]:
        """Actions reading the caller's input: those running a container."""
        if self.family is Family.COMPOSE:
            return (Action.BUILD,)
        return (Action.RUN, Action.EXEC)

    def _mark_created(self, action: Action):
        if action is Action.BUILD:
            self.image_created = True
            if self.family is Family.COMPOSE:
                self.container_started = True
        elif action is Action.RUN:
            self.container_started = True

    def _cleanup(self):
        """
        Tears down the lifecycle. Runs at most once; every step is
        independent and only logs its failures.
        """
        with self._cleanup_lock:
            if self._cleaned_up:
                return
            self._cleaned_up = True

        self._transition(LifecycleState.CLEANUP)
        self._release_live_process()

        if self._builder is not None:
            if self.family is Family.COMPOSE:
                if Action.STOP in self.actions and self.container_started:
                    self._cleanup_step(Action.DOWN)
            else:
                if self.container_started:
                    if Action.STOP in self.actions:
                        self._cleanup_step(Action.STOP)
                    if Action.STOP in self.actions or Action.RM in self.actions:
                        self._cleanup_step(Action.RM)
                if Action.RMI in self.actions and self.image_created:
                    self._cleanup_step(Action.RMI)

        self._remove_rendered_file()
        self._remove_working_dir()
        self._transition(LifecycleState.TERMINAL)

    def _release_live_process(self):
        runner = self._runner
        self._runner = None
        if runner is None:
            return
        try:
            runner.destroy()
        except Exception as e:
            logger.error("Failed to terminate running docker %s: %s", runner.name, e)

    def _cleanup_step(self, action: Action):
        _, stdout, stderr = self._streams
        try:
            command = self._builder.for_bindings(action, self.tags, self._bindings)
            exit_code = self.runner_factory(action.value).run(
                command, self.working_dir, self.environment, None, stdout, stderr)
        except Exception as e:
            logger.error("Error when running docker %s: %s", action.value, e)
            return
        if exit_code != 0:
            logger.error("Docker %s failed with exit code %s", action.value, exit_code)

    def _remove_rendered_file(self):
        if self.rendered_file is None or (self.settings is not None and self.settings.keep_file):
            return
        try:
            if delete_file(self.rendered_file):
                logger.info("Docker file %s successfully deleted.", self.rendered_file)
        except OSError as e:
            logger.warning("File: %s was not deleted: %s", self.rendered_file, e)

    def _remove_working_dir(self):
        if not self._created_working_dir or self.working_dir is None:
            return
        if self.settings is not None and self.settings.keep_file:
            return
        try:
            os.rmdir(self.working_dir)
        except OSError as e:
            logger.debug("Working directory %s left in place: %s", self.working_dir, e)

    def _attach_log_handler(self, writer: Optional[IO[Any]]) -> Optional[logging.Handler]:
        if writer is None:
            return None
        handler = logging.StreamHandler(writer)
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter("%(levelname)s - %(message)s"))
        handler.addFilter(_ThreadFilter(threading.get_ident()))
        self._holds_level = _hold_info_level()
        logging.getLogger(PACKAGE_LOGGER).addHandler(handler)
        return handler

    def _detach_log_handler(self, handler: Optional[logging.Handler]):
        if handler is None:
            return
        logging.getLogger(PACKAGE_LOGGER).removeHandler(handler)
        handler.close()
        if self._holds_level:
            self._holds_level = False
            _release_info_level()
