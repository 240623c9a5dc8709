"""
Unit tests for the docker command builder.
"""
import pytest

from dockertask.BUILDERS.command_builder import CommandBuilder
from dockertask.MODELS.actions import Action, TagNames
from dockertask.MODELS.bindings import ConfigurationBindings
from dockertask.MODELS.docker_settings import DockerSettings, Family

TAGS = TagNames(image_tag="img", container_tag="ctr")


@pytest.fixture(params=[False, True], ids=["no-sudo", "sudo"])
def settings(request):
    return DockerSettings(command="docker", sudo_command="/usr/bin/sudo", use_sudo=request.param)


def _prefix(settings):
    return ["/usr/bin/sudo", "docker"] if settings.use_sudo else ["docker"]


def test_sudo_only_when_configured(settings):
    builder = CommandBuilder(settings)
    for action in (Action.BUILD, Action.RUN, Action.EXEC, Action.STOP, Action.RM, Action.RMI):
        command = builder.build(action, TAGS)
        assert ("/usr/bin/sudo" in command) == settings.use_sudo
        assert command[:len(_prefix(settings))] == _prefix(settings)


def test_build(settings):
    command = CommandBuilder(settings).build(Action.BUILD, TAGS, ["--no-cache", "--pull"])
    assert command == _prefix(settings) + ["build", "--no-cache", "--pull", "-t", "img", "."]


def test_run(settings):
    command = CommandBuilder(settings).build(Action.RUN, TAGS, ["-t", "-d"])
    assert command == _prefix(settings) + ["run", "-t", "-d", "--name", "ctr", "img"]


def test_exec_keeps_tokens_verbatim(settings):
    command = CommandBuilder(settings).build(Action.EXEC, TAGS, ["/bin/sh", "-c", "echo 'a b'"])
    assert command == _prefix(settings) + ["exec", "ctr", "/bin/sh", "-c", "echo 'a b'"]


def test_stop_rm_rmi(settings):
    builder = CommandBuilder(settings)
    assert builder.build(Action.STOP, TAGS, ["-t", "5"]) == _prefix(settings) + ["stop", "-t", "5", "ctr"]
    assert builder.build(Action.RM, TAGS, ["-f"]) == _prefix(settings) + ["rm", "-f", "ctr"]
    assert builder.build(Action.RMI, TAGS) == _prefix(settings) + ["rmi", "img"]


def test_down_is_not_a_dockerfile_action(settings):
    with pytest.raises(ValueError):
        CommandBuilder(settings).build(Action.DOWN, TAGS)


def test_for_bindings_uses_action_options():
    builder = CommandBuilder(DockerSettings())
    bindings = ConfigurationBindings({"genericInformation": {
        "docker-build-options": "--pull",
        "docker-rm-options": "-f -v",
    }})
    assert builder.for_bindings(Action.BUILD, TAGS, bindings) == ["docker", "build", "--pull", "-t", "img", "."]
    assert builder.for_bindings(Action.RM, TAGS, bindings) == ["docker", "rm", "-f", "-v", "ctr"]
    assert builder.for_bindings(Action.RUN, TAGS, bindings) == ["docker", "run", "--name", "ctr", "img"]


class TestComposeCommands:
    """Tests for the compose family."""

    def _builder(self, use_sudo=False):
        return CommandBuilder(DockerSettings(family=Family.COMPOSE, command="docker-compose", use_sudo=use_sudo))

    def test_up(self):
        command = self._builder().build(Action.BUILD, TAGS, custom_options=["-d"], general_options=["--verbose"])
        assert command == ["docker-compose", "--no-ansi", "--verbose", "-f", "docker-compose.yml", "up", "-d"]

    def test_up_options_follow_up(self):
        bindings = ConfigurationBindings({"genericInformation": {"docker-compose-up-options": "--option1"}})
        command = self._builder().for_bindings(Action.BUILD, TAGS, bindings)
        assert command[command.index("up") + 1] == "--option1"

    def test_down(self):
        assert self._builder(use_sudo=True).build(Action.DOWN, TAGS) == [
            "/usr/bin/sudo", "docker-compose", "--no-ansi", "down", "--volumes"]

    def test_run_is_not_a_compose_action(self):
        with pytest.raises(ValueError):
            self._builder().build(Action.RUN, TAGS)

    def test_version(self):
        assert self._builder().version_command() == ["docker-compose", "--version"]
