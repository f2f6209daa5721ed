"""
CLI interface for flcmd.

Provides commands: init, parse, run, pack, unpack, repo, plugins.

Batch commands share the --input/--output/--yes/--verbosity/--checks flags
and are executed by the CommandDriver. The repo and plugins commands only
append to the deferred action queue.
"""

import functools
from pathlib import Path

import click
import requests
import yaml

from flcmd import __version__
from flcmd.actions import DeferredActionQueue
from flcmd.backend import CheckProfile
from flcmd.commands import PackCommand, ParseCommand, RunCommand, UnpackCommand
from flcmd.commands.pack import DEFAULT_PACKAGE_NAME
from flcmd.commands.repo import RepoRequest, run_plugin_actions, run_repository_actions
from flcmd.commands.run import DEFAULT_RESOLUTION
from flcmd.config import FlcmdConfig, get_flcmd_home, load_config
from flcmd.context import initialize_context, initialize_plugin_system
from flcmd.driver import BatchRequest, CommandDriver
from flcmd.errors import FlcmdError
from flcmd.repository import RepositoryClient
from flcmd.resources import DEFAULT_UNPACK_CONFIG
from flcmd.utils import format_duration, print_error, print_success, print_warning


@click.group()
@click.version_option(version=__version__, prog_name="flcmd")
@click.pass_context
def main(ctx):
    """
    flcmd - Command harness for FL programs.

    Parse, run, pack and unpack FL programs, and manage plugin packages.
    """
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config()
    except FileNotFoundError:
        # No config.yaml yet: run with defaults until `flcmd init`
        ctx.obj["config"] = FlcmdConfig()
    except FlcmdError as e:
        ctx.obj["config_error"] = str(e)


def _get_config(ctx) -> FlcmdConfig:
    if "config" not in ctx.obj:
        print_error(f"Config not loaded: {ctx.obj.get('config_error', 'Unknown error')}")
        click.echo("Fix config.yaml or run 'flcmd init --force'.", err=True)
        raise SystemExit(1)
    return ctx.obj["config"]


def batch_options(func):
    """Flags every batch command understands."""
    options = [
        click.option("--input", "-i", "inputs", multiple=True, type=click.Path(path_type=Path),
                     help="Input file or directory (repeatable)"),
        click.option("--output", "-o", "outputs", multiple=True, type=click.Path(path_type=Path),
                     help="Output path for the input at the same position (repeatable)"),
        click.option("--yes", "no_dialogs", is_flag=True, help="Answer all dialogs with Yes"),
        click.option("--verbosity", "-v", default=1, show_default=True, type=int,
                     help="Verbosity level (lower = less logs)"),
        click.option("--checks", "-checks", default=CheckProfile.INPUT_VALIDATION.value, show_default=True,
                     type=click.Choice(CheckProfile.names(), case_sensitive=False),
                     help="Program check profile"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def dialog_options(func):
    """Flags for commands that only touch the package system."""
    func = click.option("--verbosity", "-v", default=1, show_default=True, type=int,
                        help="Verbosity level (lower = less logs)")(func)
    func = click.option("--yes", "no_dialogs", is_flag=True, help="Answer all dialogs with Yes")(func)
    return func


def _run_batch(ctx, command, inputs, outputs, no_dialogs: bool, verbosity: int, checks: str) -> None:
    """Run a batch command through the driver and report the outcome."""
    config = _get_config(ctx)
    request = BatchRequest(
        inputs=list(inputs),
        outputs=list(outputs),
        no_dialogs=no_dialogs,
        verbosity=verbosity,
        checks=CheckProfile(checks.lower()),
    )
    driver = CommandDriver(
        lambda req: initialize_context(
            config, verbosity=req.verbosity, no_dialogs=req.no_dialogs, checks=req.checks
        )
    )

    try:
        result = driver.run(command, request)
    except FlcmdError as e:
        print_error(str(e))
        raise SystemExit(1)

    if result.skipped:
        print_warning(f"{len(result.skipped)} job(s) skipped (no entry point)")
    print_success(
        f"{command.name}: {len(result.completed)}/{len(result.jobs)} job(s) in "
        f"{format_duration(result.duration_seconds)}"
    )


def _handle_errors(func):
    """Turn flcmd and HTTP errors into a red line and exit code 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (FlcmdError, requests.RequestException) as e:
            print_error(str(e))
            raise SystemExit(1)
    return wrapper


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize flcmd configuration."""
    home = get_flcmd_home()
    home.mkdir(parents=True, exist_ok=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}. Use --force to overwrite.", err=True)
        raise SystemExit(1)

    default_cfg = FlcmdConfig(home=home).to_dict()
    cfg_path.write_text(yaml.safe_dump(default_cfg, sort_keys=False))
    (home / "kernels").mkdir(exist_ok=True)

    click.echo(f"Initialized flcmd config at {cfg_path}")
    click.echo("Install a compute backend package and put kernel sources into the kernel_dir.")


@main.command("parse")
@batch_options
@click.option("--defines", "-d", multiple=True, help="Define tag (repeatable)")
@click.option("--extra-steps", "-e", multiple=True, help="Extra serialization step (repeatable)")
@click.pass_context
def parse_cmd(ctx, inputs, outputs, no_dialogs, verbosity, checks, defines, extra_steps):
    """
    Serialize FL sources (*.fl -> *.flc).

    Examples:

        flcmd parse -i noise.fl

        flcmd parse -i noise.fl -o build/noise.flc -d HIGH_QUALITY
    """
    command = ParseCommand(defines=list(defines), extra_steps=list(extra_steps))
    _run_batch(ctx, command, inputs, outputs, no_dialogs, verbosity, checks)


@main.command("run")
@batch_options
@click.option("--defines", "-d", multiple=True, help="Define tag (repeatable)")
@click.option("--warm", "-w", "warm_buffers", is_flag=True, help="Warm buffers before running")
@click.option("--x", "-x", "width", default=DEFAULT_RESOLUTION, show_default=True, type=int,
              help="X resolution")
@click.option("--y", "-y", "height", default=DEFAULT_RESOLUTION, show_default=True, type=int,
              help="Y resolution")
@click.option("--use-save-thread", "-save-thread", "save_workers", type=int, default=0,
              is_flag=False, flag_value=1, show_default=True,
              help="Save images on N background threads (no value = 1, 0 = synchronous)")
@click.pass_context
def run_cmd(ctx, inputs, outputs, no_dialogs, verbosity, checks, defines, warm_buffers,
            width, height, save_workers):
    """
    Run FL programs and save the images (*.fl, *.flc -> *.png, *.bmp).

    Directories given as input are searched for *.flc and *.fl files.

    Examples:

        flcmd run -i noise.fl

        flcmd run -i programs/ --use-save-thread 4 -x 512 -y 512
    """
    try:
        command = RunCommand(
            defines=list(defines),
            warm_buffers=warm_buffers,
            width=width,
            height=height,
            save_workers=save_workers,
        )
    except ValueError as e:
        raise click.UsageError(str(e))
    _run_batch(ctx, command, inputs, outputs, no_dialogs, verbosity, checks)


@main.command("pack")
@batch_options
@click.option("--defines", "-d", multiple=True, help="Define tag (repeatable)")
@click.option("--extra-steps", "-e", multiple=True, help="Extra serialization step (repeatable)")
@click.option("--export-fl", "-export", is_flag=True, help="Export FL scripts to FLC before packing")
@click.option("--keep-fl", is_flag=True, help="Keep the FL scripts when exporting")
@click.option("--name", "-n", "package_name", default=DEFAULT_PACKAGE_NAME, show_default=True,
              help="Package name")
@click.option("--unpack-config", "-u", default=DEFAULT_UNPACK_CONFIG, show_default=True,
              help="Unpacker used when the package is activated")
@click.pass_context
def pack_cmd(ctx, inputs, outputs, no_dialogs, verbosity, checks, defines, extra_steps,
             export_fl, keep_fl, package_name, unpack_config):
    """
    Pack directories into resource packages (directory -> *.flres).

    Examples:

        flcmd pack -i textures/ -n textures

        flcmd pack -i textures/ --export-fl --keep-fl -u fl2tex
    """
    command = PackCommand(
        defines=list(defines),
        extra_steps=list(extra_steps),
        export_fl=export_fl,
        keep_fl=keep_fl,
        package_name=package_name,
        unpack_config=unpack_config,
    )
    _run_batch(ctx, command, inputs, outputs, no_dialogs, verbosity, checks)


@main.command("unpack")
@batch_options
@click.pass_context
def unpack_cmd(ctx, inputs, outputs, no_dialogs, verbosity, checks):
    """
    Unpack resource packages (*.flres -> directory).

    Example:

        flcmd unpack -i textures.flres -o out/textures
    """
    _run_batch(ctx, UnpackCommand(), inputs, outputs, no_dialogs, verbosity, checks)


@main.command("repo")
@dialog_options
@click.option("--add", "-a", multiple=True, help="Add a package by name")
@click.option("--add-activate", "-aa", multiple=True, help="Add and activate a package by name")
@click.option("--remove", "-r", multiple=True, help="Remove a package by name")
@click.option("--activate", "-active", multiple=True, help="Activate a package by name")
@click.option("--deactivate", "-d", multiple=True, help="Deactivate a package by name")
@click.option("--add-origin", "-ao", multiple=True, help="Add an origin URL")
@click.option("--remove-origin", "-ro", multiple=True, help="Remove an origin URL")
@click.option("--default-origin", "-default", is_flag=True,
              help="Overwrite the origins file with the default origins")
@click.option("--all", "-all", "install_all", is_flag=True,
              help="Add and activate every package of every repository")
@click.option("--list-packages", is_flag=True, help="List the packages of all repositories")
@click.pass_context
@_handle_errors
def repo_cmd(ctx, no_dialogs, verbosity, add, add_activate, remove, activate, deactivate,
             add_origin, remove_origin, default_origin, install_all, list_packages):
    """
    Manage plugin packages and repository origins.

    Changes are queued and applied the next time flcmd starts.

    Examples:

        flcmd repo --list-packages

        flcmd repo -a fl-noise -a fl-blur --yes

        flcmd repo -ao https://example.org/repo.yaml
    """
    config = _get_config(ctx)
    fl_ctx = initialize_plugin_system(config, verbosity=verbosity, no_dialogs=no_dialogs)
    client = RepositoryClient(
        config.origins_file, config.default_origin_url, timeout=config.request_timeout
    )
    request = RepoRequest(
        add=list(add),
        add_activate=list(add_activate),
        remove=list(remove),
        activate=list(activate),
        deactivate=list(deactivate),
        add_origin=list(add_origin),
        remove_origin=list(remove_origin),
        default_origin=default_origin,
        install_all=install_all,
        list_packages=list_packages,
    )
    result = run_repository_actions(fl_ctx, client, DeferredActionQueue(config.action_log_file), request)

    if result.unresolved:
        print_warning(f"Not found in any repository: {', '.join(result.unresolved)}")
    if result.queued:
        print_success(f"{result.queued} action(s) queued for next startup")


@main.command("plugins")
@dialog_options
@click.option("--add", "-a", multiple=True, help="Add and activate a plugin package")
@click.option("--remove", "-r", multiple=True, help="Remove a plugin package")
@click.pass_context
@_handle_errors
def plugins_cmd(ctx, no_dialogs, verbosity, add, remove):
    """
    Add or remove plugin packages directly (no repository lookup).

    Example:

        flcmd plugins -a https://example.org/packages/fl-noise.zip
    """
    config = _get_config(ctx)
    initialize_plugin_system(config, verbosity=verbosity, no_dialogs=no_dialogs)
    queued = run_plugin_actions(DeferredActionQueue(config.action_log_file), list(add), list(remove))
    if queued:
        print_success(f"{queued} action(s) queued for next startup")


if __name__ == "__main__":
    main()
