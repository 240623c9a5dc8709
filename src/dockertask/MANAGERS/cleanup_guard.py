"""
Best-effort guarantee that a lifecycle's cleanup runs when the controlling
process is asked to terminate.

The routine is registered with ``atexit`` and, when installed from the main
thread, SIGTERM and SIGHUP are turned into ``SystemExit`` so the running
lifecycle unwinds through its own cleanup. A signal that cannot be handled
(SIGKILL, or a hard process kill on Windows) bypasses all of this and no
cleanup runs; containers and images may then be left behind.
"""
import atexit
import logging
import signal
import threading
from typing import Callable, Dict

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = ("SIGTERM", "SIGHUP")


class CleanupGuard:
    """
    Registration of one cleanup routine, from :meth:`install` until :meth:`remove`.
    """

    def __init__(self, routine: Callable[[], None]):
        """
        :param routine: Cleanup to run. It must tolerate being called more
            than once; only the first call is expected to do anything.
        """
        self._routine = routine
        self._previous_handlers: Dict[int, object] = {}
        self.installed = False

    def install(self):
        if self.installed:
            return
        atexit.register(self._at_exit)
        if threading.current_thread() is threading.main_thread():
            for name in HANDLED_SIGNALS:
                signum = getattr(signal, name, None)
                if signum is None:
                    continue
                try:
                    self._previous_handlers[signum] = signal.signal(signum, self._on_signal)
                except (OSError, ValueError) as e:
                    logger.debug("Cannot handle %s: %s", name, e)
        self.installed = True

    def remove(self):
        if not self.installed:
            return
        atexit.unregister(self._at_exit)
        for signum, previous in self._previous_handlers.items():
            try:
                signal.signal(signum, previous if previous is not None else signal.SIG_DFL)
            except (OSError, ValueError) as e:
                logger.debug("Cannot restore handler of signal %s: %s", signum, e)
        self._previous_handlers.clear()
        self.installed = False

    def _on_signal(self, signum, frame):
        logger.warning("Received signal %s, cleaning up before exiting.", signum)
        raise SystemExit(128 + signum)

    def _at_exit(self):
        logger.info("Interpreter exiting, running pending cleanup.")
        self._routine()

    def __enter__(self) -> "CleanupGuard":
        self.install()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.remove()
        return False
