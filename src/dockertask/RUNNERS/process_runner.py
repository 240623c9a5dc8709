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
Execution of system processes with their I/O wired to caller-supplied streams.
"""
import codecs
import io
import logging
import os
import subprocess
import threading
from typing import IO, Any, Dict, List, Optional

import psutil

from ..errors import LaunchError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 8192


def _write(writer: IO[Any], data: str, lock: threading.Lock):
    with lock:
        if isinstance(writer, (io.RawIOBase, io.BufferedIOBase)):
            writer.write(data.encode("utf-8"))
        else:
            writer.write(data)
        writer.flush()


def _pump_output(name: str, source: IO[bytes], writer: Optional[IO[Any]], lock: threading.Lock):
    """
    Copies a child output pipe to ``writer`` until the child closes it.

    The pipe keeps being drained after the writer fails, otherwise the child
    would block on a full pipe.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    read = getattr(source, "read1", source.read)
    try:
        while True:
            chunk = read(_CHUNK_SIZE)
            if not chunk:
                break
            if writer is None:
                continue
            text = decoder.decode(chunk)
            if not text:
                continue
            try:
                _write(writer, text, lock)
            except (OSError, ValueError) as e:
                logger.warning("[%s] Output stream closed, discarding further output: %s", name, e)
                writer = None
        tail = decoder.decode(b"", final=True)
        if tail and writer is not None:
            _write(writer, tail, lock)
    except (OSError, ValueError) as e:
        logger.debug("[%s] Output pipe closed: %s", name, e)
    finally:
        source.close()


def _pump_input(name: str, reader: IO[Any], sink: IO[bytes]):
    """
    Copies ``reader`` line by line into the child's stdin.
    """
    try:
        while True:
            line = reader.readline()
            if not line:
                break
            sink.write(line.encode("utf-8") if isinstance(line, str) else line)
            sink.flush()
    except (OSError, ValueError) as e:
        # The child exited or stopped reading its input.
        logger.debug("[%s] Input pipe closed: %s", name, e)
    finally:
        try:
            sink.close()
        except OSError:
            pass


class ProcessRunner:
    """
    Manages the execution of a single system process.
    """
    def __init__(self, name: str):
        """
        Initializes the process runner.

        Args:
            name (str): Identifier for the process, used in log messages.
        """
        self.name = name
        self.process: Optional[subprocess.Popen] = None
        self.returncode: Optional[int] = None
        self._destroyed = False
        self._lock = threading.Lock()

    def run(self,
            command: List[str],
            working_dir: Optional[str] = None,
            env: Optional[Dict[str, str]] = None,
            stdin: Optional[IO[Any]] = None,
            stdout: Optional[IO[Any]] = None,
            stderr: Optional[IO[Any]] = None) -> int:
        """
        Starts the process, attaches its streams and waits for it to exit.

        The three stream copies run on their own threads for the lifetime of
        the process. Output copies are joined once the process has exited;
        the input copy is not, as it may be blocked on the caller's reader.

        Args:
            command (List[str]): Command and arguments to execute.
            working_dir (Optional[str]): Directory to start the process in.
            env (Optional[Dict[str, str]]): Variables overlaid on the current environment.
            stdin (Optional[IO]): Reader copied to the child's input; None gives it /dev/null.
            stdout (Optional[IO]): Writer receiving the child's output; None discards it.
            stderr (Optional[IO]): Writer receiving the child's errors; defaults to ``stdout``.

        Returns:
            int: The exit code of the process.

        Raises:
            LaunchError: If the process cannot be started.
        """
        if working_dir and not os.path.exists(working_dir):
            os.makedirs(working_dir, exist_ok=True)

        process_env = os.environ.copy()
        if env:
            process_env.update(env)
        error_writer = stderr if stderr is not None else stdout

        logger.info("Running command: %s", command)
        try:
            process = subprocess.Popen(
                command,
                env=process_env,
                cwd=working_dir,
                stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                # Avoid shell=True for security reasons (CWE-78)
                shell=False
            )
        except (OSError, ValueError) as e:
            logger.error("[%s] Failed to start: %s", self.name, e)
            raise LaunchError(self.name, command, e) from e

        with self._lock:
            self.process = process
            self.returncode = None
            destroyed = self._destroyed
        if destroyed:
            # destroy() ran before the process existed.
            logger.info("[%s] Destroyed before start, stopping process...", self.name)
            self._terminate_tree(process, timeout=10)

        out_lock = threading.Lock()
        err_lock = out_lock if error_writer is stdout else threading.Lock()
        pumps = [
            threading.Thread(target=_pump_output, args=(self.name, process.stdout, stdout, out_lock),
                             name=f"{self.name}-stdout", daemon=True),
            threading.Thread(target=_pump_output, args=(self.name, process.stderr, error_writer, err_lock),
                             name=f"{self.name}-stderr", daemon=True),
        ]
        if stdin is not None:
            threading.Thread(target=_pump_input, args=(self.name, stdin, process.stdin),
                             name=f"{self.name}-stdin", daemon=True).start()
        for pump in pumps:
            pump.start()

        exit_code = process.wait()
        for pump in pumps:
            pump.join()

        with self._lock:
            self.returncode = exit_code
            if self.process is process:
                self.process = None
        logger.debug("[%s] Exited with code %s", self.name, exit_code)
        return exit_code

    def destroy(self, timeout: float = 10):
        """
        Terminates the process and its descendants, killing whatever is still
        alive after ``timeout`` seconds. Called before :meth:`run` has started
        its process, the process is terminated as soon as it starts.

        May be called from another thread while :meth:`run` is waiting.
        """
        with self._lock:
            self._destroyed = True
            process = self.process
        if process is None or process.poll() is not None:
            return

        logger.info("[%s] Stopping process...", self.name)
        self._terminate_tree(process, timeout)

    def _terminate_tree(self, process: subprocess.Popen, timeout: float):
        try:
            children = psutil.Process(process.pid).children(recursive=True)
        except psutil.Error:
            children = []

        process.terminate()
        for child in children:
            try:
                child.terminate()
            except psutil.Error:
                pass

        try:
            process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning("[%s] Process did not terminate, killing...", self.name)
            process.kill()
            process.wait()

        _, alive = psutil.wait_procs(children, timeout=1)
        for child in alive:
            try:
                child.kill()
            except psutil.Error:
                pass

        with self._lock:
            self.returncode = process.returncode
            if self.process is process:
                self.process = None

    def is_running(self) -> bool:
        """
        Checks if the process is currently running.

        Returns:
            bool: True if running, False otherwise.
        """
        with self._lock:
            process = self.process
        return process is not None and process.poll() is None

    def get_exit_code(self) -> Optional[int]:
        """
        Gets the exit code of the last process.

        Returns:
            Optional[int]: Exit code if the process finished, None otherwise.
        """
        with self._lock:
            process = self.process
        if process is not None:
            return process.poll()
        return self.returncode
