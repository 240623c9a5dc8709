"""
Command Line Interface for dockertask.
"""
import logging
import sys

import click
import yaml

from ..errors import LifecycleError
from ..MANAGERS.configuration import EngineConfiguration
from ..MANAGERS.lifecycle_controller import LifecycleController
from ..MODELS.actions import ACTIONS_KEY, CONTAINER_TAG_KEY, IMAGE_TAG_KEY
from ..MODELS.bindings import GENERIC_INFORMATION_KEY, SCRATCH_DIR_KEY
from ..MODELS.docker_settings import Family
from ..RUNNERS.version_probe import get_docker_version


def _load_bindings(path):
    """
    Reads task bindings from a YAML file.
    """
    if not path:
        return {}
    with open(path, 'r') as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise click.BadParameter(f"{path} must contain a mapping", param_hint="--bindings")
    return data


def _run(ctx, family, template, bindings, generic_overrides, scratch_dir):
    configuration = EngineConfiguration(family, properties_file=ctx.obj.get('config'))
    if generic_overrides:
        generic_information = dict(bindings.get(GENERIC_INFORMATION_KEY) or {})
        generic_information.update(generic_overrides)
        bindings[GENERIC_INFORMATION_KEY] = generic_information
    if scratch_dir:
        bindings[SCRATCH_DIR_KEY] = scratch_dir

    controller = LifecycleController(configuration)
    try:
        exit_code = controller.execute(template.read(), bindings,
                                       stdin=None, stdout=sys.stdout, stderr=sys.stderr)
    except LifecycleError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(e.exit_code or 1)
    if exit_code is None:
        click.echo("Lifecycle interrupted.", err=True)
        ctx.exit(130)
    ctx.exit(exit_code)


@click.group()
@click.option('--config', '-c', type=click.Path(dir_okay=False), default=None,
              help='Properties file (defaults to config/scriptengines/<family>.properties)')
@click.option('--log-level', default='INFO',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False))
@click.pass_context
def cli(ctx, config, log_level):
    """
    dockertask - run one docker task lifecycle.

    Renders a Dockerfile or compose template and drives build, run and exec,
    always cleaning up the containers, images and files it created.
    """
    ctx.ensure_object(dict)
    ctx.obj['config'] = config
    # Lifecycle messages reach stderr through the controller's own handler.
    logging.getLogger('dockertask').setLevel(getattr(logging, log_level.upper()))


@cli.command()
@click.argument('template', type=click.File('r'))
@click.option('--bindings', '-b', type=click.Path(exists=True, dir_okay=False), help='YAML bindings file')
@click.option('--actions', '-a', default=None, help='Comma-separated actions, e.g. build,run,stop,rmi')
@click.option('--image-tag', default=None, help='Image name')
@click.option('--container-tag', default=None, help='Container name')
@click.option('--scratch-dir', type=click.Path(file_okay=False), default=None, help='Working directory')
@click.pass_context
def dockerfile(ctx, template, bindings, actions, image_tag, container_tag, scratch_dir):
    """Build and run a Dockerfile template."""
    overrides = {}
    if actions:
        overrides[ACTIONS_KEY] = actions
    if image_tag:
        overrides[IMAGE_TAG_KEY] = image_tag
    if container_tag:
        overrides[CONTAINER_TAG_KEY] = container_tag
    _run(ctx, Family.DOCKERFILE, template, _load_bindings(bindings), overrides, scratch_dir)


@cli.command()
@click.argument('template', type=click.File('r'))
@click.option('--bindings', '-b', type=click.Path(exists=True, dir_okay=False), help='YAML bindings file')
@click.option('--scratch-dir', type=click.Path(file_okay=False), default=None, help='Working directory')
@click.pass_context
def compose(ctx, template, bindings, scratch_dir):
    """Bring a compose template up, then down."""
    _run(ctx, Family.COMPOSE, template, _load_bindings(bindings), {}, scratch_dir)


@cli.command()
@click.option('--family', '-f', type=click.Choice([f.value for f in Family]), default=Family.COMPOSE.value)
@click.pass_context
def version(ctx, family):
    """Print the version of the docker tooling."""
    configuration = EngineConfiguration(Family(family), properties_file=ctx.obj.get('config'))
    output = get_docker_version(configuration.settings())
    if not output:
        click.echo("Error: version could not be retrieved.", err=True)
        ctx.exit(1)
    click.echo(output)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
