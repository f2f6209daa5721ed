"""
Deferred action queue.

Package and repository-origin changes cannot be applied while flcmd runs
(the affected plugins are already loaded), so they are appended to a flat
action log instead. A separate bootstrap step replays and clears the log
on the next launch; flcmd itself never reads or rewrites it.

Each entry is one line: "<action-token> <argument>".
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from flcmd.repository import Repository

logger = logging.getLogger(__name__)


class ActionKind(str, Enum):
    """Action tokens understood by the bootstrap step."""

    ADD_PACKAGE = "add-package"
    ADD_ACTIVATE_PACKAGE = "add-activate-package"
    REMOVE_PACKAGE = "remove-package"
    ACTIVATE_PACKAGE = "activate-package"
    DEACTIVATE_PACKAGE = "deactivate-package"
    ADD_ORIGIN = "add-origin"
    REMOVE_ORIGIN = "remove-origin"


@dataclass(frozen=True)
class ActionEntry:
    """One line of the action log."""

    kind: ActionKind
    argument: str

    def __post_init__(self):
        if not self.argument or "\n" in self.argument:
            raise ValueError(f"Invalid action argument: {self.argument!r}")

    def to_line(self) -> str:
        return f"{self.kind.value} {self.argument}\n"


class DeferredActionQueue:
    """Append-only log of actions to run at next startup."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def add_action_to_startup(self, kind: ActionKind, argument: str) -> ActionEntry:
        """
        Append one entry to the log.

        Each call is a single independent append, so separate flcmd
        processes can record actions concurrently.
        """
        entry = ActionEntry(ActionKind(kind), argument)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(entry.to_line())

        logger.info(
            f"[actions] Queued for next startup: {entry.kind.value} {entry.argument}",
            extra={"event": "action_queued", "metadata": {"kind": entry.kind.value}},
        )
        return entry


def resolve_package_origin(repositories: Iterable[Repository], name: str) -> Optional[str]:
    """Return the origin URL of the first repository listing `name`."""
    for repo in repositories:
        for plugin in repo.plugins:
            if plugin.name == name:
                return plugin.origin
    return None


def queue_package_add(action_queue: DeferredActionQueue, repositories: Iterable[Repository],
                      name: str, activate: bool = False) -> bool:
    """
    Queue an add (or add-and-activate) for a package given by name.

    Returns:
        True if an entry was appended, False if no repository lists the package
    """
    origin = resolve_package_origin(repositories, name)
    if origin is None:
        logger.warning(f"[repo] Can not add package '{name}'. No known repository lists it")
        return False

    kind = ActionKind.ADD_ACTIVATE_PACKAGE if activate else ActionKind.ADD_PACKAGE
    action_queue.add_action_to_startup(kind, origin)
    return True
