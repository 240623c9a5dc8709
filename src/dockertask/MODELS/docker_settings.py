"""
Models for the resolved docker tooling settings of a template family.
"""
from enum import Enum

from pydantic import BaseModel


class Family(str, Enum):
    """
    Kind of template a lifecycle is driven from.
    """

    DOCKERFILE = "dockerfile"
    COMPOSE = "compose"

    @property
    def file_name(self) -> str:
        """Name the rendered template is written under."""
        return "Dockerfile" if self is Family.DOCKERFILE else "docker-compose.yml"


class DockerSettings(BaseModel):
    """
    Effective settings once defaults, the properties file, process-wide
    properties and per-task overrides have been merged.
    """

    family: Family = Family.DOCKERFILE
    command: str = "docker"
    sudo_command: str = "/usr/bin/sudo"
    use_sudo: bool = False
    docker_host: str = ""
    keep_file: bool = False
