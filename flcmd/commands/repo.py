"""
Repository and plugin commands.

These never touch installed packages directly. Every change is appended
to the deferred action queue and applied by the bootstrap step the next
time the tool starts. Only the origins file is written in place, and
only when the default origins are requested or on first run.
"""

from dataclasses import dataclass, field

from rich.table import Table

from flcmd.actions import ActionKind, DeferredActionQueue, queue_package_add
from flcmd.context import FLContext
from flcmd.repository import Repository, RepositoryClient
from flcmd.utils import console

TAG = "[repo]"


@dataclass
class RepoRequest:
    """Flags of the repo command."""

    add: list[str] = field(default_factory=list)
    add_activate: list[str] = field(default_factory=list)
    remove: list[str] = field(default_factory=list)
    activate: list[str] = field(default_factory=list)
    deactivate: list[str] = field(default_factory=list)
    add_origin: list[str] = field(default_factory=list)
    remove_origin: list[str] = field(default_factory=list)
    default_origin: bool = False
    install_all: bool = False
    list_packages: bool = False


@dataclass
class RepoResult:
    queued: int = 0
    unresolved: list[str] = field(default_factory=list)
    repositories: list[Repository] = field(default_factory=list)


def ensure_origins(ctx: FLContext, client: RepositoryClient, default_origin: bool) -> None:
    """Write the default origins when asked to, or offer it on first run."""
    if default_origin:
        client.write_default_origins()
        return
    if client.has_origins_file():
        return
    if ctx.show_dialog(TAG, "First Startup.", "Do you want to create the default Origins File?"):
        client.write_default_origins()


def run_repository_actions(ctx: FLContext, client: RepositoryClient, action_queue: DeferredActionQueue,
                           request: RepoRequest) -> RepoResult:
    """
    Queue everything the repo flags ask for.

    Names that no repository lists are logged and skipped; the remaining
    actions are still queued.
    """
    result = RepoResult()
    ensure_origins(ctx, client, request.default_origin)

    repositories = client.fetch_repositories()
    result.repositories = repositories
    ctx.log(TAG, f"{len(repositories)} repository listing(s) loaded", 2)

    add_activate = list(request.add_activate)
    if request.install_all:
        add_activate = [plugin.name for repo in repositories for plugin in repo.plugins]

    def queue(kind: ActionKind, argument: str) -> None:
        action_queue.add_action_to_startup(kind, argument)
        result.queued += 1

    for origin in request.remove_origin:
        queue(ActionKind.REMOVE_ORIGIN, origin)
    for origin in request.add_origin:
        queue(ActionKind.ADD_ORIGIN, origin)
    for name in request.deactivate:
        queue(ActionKind.DEACTIVATE_PACKAGE, name)
    for name in request.remove:
        queue(ActionKind.REMOVE_PACKAGE, name)

    for names, activate in ((request.add, False), (add_activate, True)):
        for name in names:
            if queue_package_add(action_queue, repositories, name, activate=activate):
                result.queued += 1
            else:
                result.unresolved.append(name)

    for name in request.activate:
        queue(ActionKind.ACTIVATE_PACKAGE, name)

    if request.list_packages:
        print_packages(repositories)

    return result


def print_packages(repositories: list[Repository]) -> None:
    table = Table(title="Available Packages")
    table.add_column("Repository")
    table.add_column("Package")
    table.add_column("Version")
    table.add_column("Origin", overflow="fold")
    for repo in repositories:
        for plugin in repo.plugins:
            table.add_row(repo.name, plugin.name, plugin.version, plugin.origin)
    console.print(table)


def run_plugin_actions(action_queue: DeferredActionQueue, add: list[str], remove: list[str]) -> int:
    """Queue plugin adds/removes verbatim, without repository lookup."""
    for name in remove:
        action_queue.add_action_to_startup(ActionKind.REMOVE_PACKAGE, name)
    for name in add:
        action_queue.add_action_to_startup(ActionKind.ADD_ACTIVATE_PACKAGE, name)
    return len(add) + len(remove)
