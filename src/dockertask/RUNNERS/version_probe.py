"""
Utilities for querying the version of the docker tooling.
"""
import io
import logging

from ..BUILDERS.command_builder import CommandBuilder
from ..errors import LaunchError
from ..MODELS.docker_settings import DockerSettings
from .process_runner import ProcessRunner

logger = logging.getLogger(__name__)


def get_docker_version(settings: DockerSettings) -> str:
    """
    Runs ``<command> --version`` and returns what it printed, or an empty
    string if the binary could not be run.
    """
    output = io.StringIO()
    command = CommandBuilder(settings).version_command()
    try:
        ProcessRunner("version").run(command, stdout=output, stderr=io.StringIO())
    except LaunchError as e:
        logger.warning("Failed to retrieve %s version.", settings.command)
        logger.debug("Failed to retrieve %s version.", settings.command, exc_info=e)
        return ""
    return output.getvalue().strip()
