"""Tests for the repo and plugins commands (no network, fake repository client)."""

from unittest.mock import MagicMock, patch

import pytest

from flcmd.actions import DeferredActionQueue
from flcmd.commands.repo import (
    RepoRequest,
    ensure_origins,
    run_plugin_actions,
    run_repository_actions,
)
from flcmd.repository import PluginPointer, Repository


@pytest.fixture
def client():
    client = MagicMock()
    client.has_origins_file.return_value = True
    client.fetch_repositories.return_value = [
        Repository("main", "https://a.example/repo.yaml", [
            PluginPointer("fl-noise", "1.0.0", "https://a.example/fl-noise.zip"),
            PluginPointer("fl-blur", "1.0.0", "https://a.example/fl-blur.zip"),
        ]),
    ]
    return client


@pytest.fixture
def action_queue(tmp_path):
    return DeferredActionQueue(tmp_path / "startup-actions.txt")


def _lines(action_queue):
    return action_queue.path.read_text().splitlines() if action_queue.path.exists() else []


class TestEnsureOrigins:
    """Tests for ensure_origins."""

    def test_existing_file_untouched(self, ctx, client):
        """An existing origins file is left alone."""
        ensure_origins(ctx, client, default_origin=False)
        client.write_default_origins.assert_not_called()

    def test_first_run_with_yes(self, ctx, client):
        """On first run --yes writes the default origins."""
        client.has_origins_file.return_value = False
        ensure_origins(ctx, client, default_origin=False)
        client.write_default_origins.assert_called_once()

    def test_first_run_declined(self, ctx, client):
        """Declining the first-run dialog writes nothing."""
        ctx.no_dialogs = False
        client.has_origins_file.return_value = False
        with patch("flcmd.context.click.confirm", return_value=False):
            ensure_origins(ctx, client, default_origin=False)
        client.write_default_origins.assert_not_called()

    def test_default_origin_forces_overwrite(self, ctx, client):
        """--default-origin always rewrites the origins file."""
        ensure_origins(ctx, client, default_origin=True)
        client.write_default_origins.assert_called_once()


class TestRunRepositoryActions:
    """Tests for run_repository_actions."""

    def test_add_resolves_origin(self, ctx, client, action_queue):
        """--add queues the package's origin URL."""
        result = run_repository_actions(ctx, client, action_queue, RepoRequest(add=["fl-noise"]))
        assert result.queued == 1
        assert _lines(action_queue) == ["add-package https://a.example/fl-noise.zip"]

    def test_unresolved_names_do_not_stop_others(self, ctx, client, action_queue):
        """Unknown names are reported while known ones are queued."""
        request = RepoRequest(add=["fl-missing", "fl-blur"], add_activate=["fl-nope"])
        result = run_repository_actions(ctx, client, action_queue, request)

        assert result.unresolved == ["fl-missing", "fl-nope"]
        assert _lines(action_queue) == ["add-package https://a.example/fl-blur.zip"]

    def test_action_order(self, ctx, client, action_queue):
        """Actions are appended in the documented order."""
        request = RepoRequest(
            add=["fl-noise"],
            add_activate=["fl-blur"],
            remove=["old"],
            activate=["fl-noise"],
            deactivate=["legacy"],
            add_origin=["https://new.example/repo.yaml"],
            remove_origin=["https://gone.example/repo.yaml"],
        )
        result = run_repository_actions(ctx, client, action_queue, request)

        assert result.queued == 7
        assert _lines(action_queue) == [
            "remove-origin https://gone.example/repo.yaml",
            "add-origin https://new.example/repo.yaml",
            "deactivate-package legacy",
            "remove-package old",
            "add-package https://a.example/fl-noise.zip",
            "add-activate-package https://a.example/fl-blur.zip",
            "activate-package fl-noise",
        ]

    def test_install_all(self, ctx, client, action_queue):
        """--all add-activates every listed package."""
        request = RepoRequest(install_all=True, add_activate=["ignored"])
        result = run_repository_actions(ctx, client, action_queue, request)

        assert result.unresolved == []
        assert _lines(action_queue) == [
            "add-activate-package https://a.example/fl-noise.zip",
            "add-activate-package https://a.example/fl-blur.zip",
        ]

    def test_list_packages(self, ctx, client, action_queue):
        """--list-packages prints one table."""
        with patch("flcmd.commands.repo.console") as console:
            result = run_repository_actions(ctx, client, action_queue, RepoRequest(list_packages=True))
        console.print.assert_called_once()
        assert result.queued == 0
        assert len(result.repositories) == 1


class TestRunPluginActions:
    """Tests for run_plugin_actions."""

    def test_verbatim(self, action_queue):
        """plugins records its arguments without lookup."""
        count = run_plugin_actions(action_queue, add=["https://x/p.zip"], remove=["old"])
        assert count == 2
        assert _lines(action_queue) == [
            "remove-package old",
            "add-activate-package https://x/p.zip",
        ]

    def test_nothing_to_do(self, action_queue):
        """No flags leaves the action log untouched."""
        assert run_plugin_actions(action_queue, [], []) == 0
        assert not action_queue.path.exists()
