import os
import stat
import sys

import pytest
import yaml
from click.testing import CliRunner

from dockertask.CLI.main import cli

FAKE_DOCKER = """#!/bin/sh
if [ "$1" = "--version" ]; then echo "docker-compose version 1.29.2"; exit 0; fi
if [ "$1" = "$FAKE_DOCKER_FAIL" ]; then exit 4; fi
echo "fake $@"
"""


@pytest.fixture
def config_file(tmp_path):
    script = tmp_path / "docker"
    script.write_text(FAKE_DOCKER)
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    config = tmp_path / "engine.properties"
    config.write_text(
        f"docker.file.command={script}\n"
        f"docker.compose.command={script}\n"
        f"docker.compose.command.windows={script}\n"
    )
    return str(config)


def test_cli_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['--help'])
    assert result.exit_code == 0
    assert 'docker task lifecycle' in result.output


def test_cli_dockerfile_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['dockerfile', '--help'])
    assert result.exit_code == 0
    assert '--actions' in result.output


@pytest.mark.skipif(sys.platform.startswith("win"), reason="fake docker is a shell script")
def test_cli_dockerfile_build(tmp_path, config_file):
    template = tmp_path / "Dockerfile.in"
    template.write_text("FROM busybox\n")
    runner = CliRunner()
    result = runner.invoke(cli, ['-c', config_file, 'dockerfile', str(template),
                                 '--actions', 'build', '--image-tag', 'my-image'])
    assert result.exit_code == 0, result.output
    assert 'fake build -t my-image .' in result.output


@pytest.mark.skipif(sys.platform.startswith("win"), reason="fake docker is a shell script")
def test_cli_reports_failing_action(tmp_path, config_file):
    template = tmp_path / "Dockerfile.in"
    template.write_text("FROM busybox\n")
    bindings = tmp_path / "bindings.yml"
    with open(bindings, 'w') as f:
        yaml.dump({"FAKE_DOCKER_FAIL": "build", "genericInformation": {"docker-actions": "build"}}, f)
    runner = CliRunner()
    result = runner.invoke(cli, ['-c', config_file, 'dockerfile', str(template), '-b', str(bindings)])
    assert result.exit_code == 4


@pytest.mark.skipif(sys.platform.startswith("win"), reason="fake docker is a shell script")
def test_cli_version(config_file):
    runner = CliRunner()
    result = runner.invoke(cli, ['-c', config_file, 'version'])
    assert result.exit_code == 0
    assert 'docker-compose version 1.29.2' in result.output
