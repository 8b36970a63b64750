"""
Tests for per-(user, repo) workspace allocation and cleanup.
"""
import logging

import pytest

from app.modules.deployments import workspace as workspace_module
from app.modules.deployments.workspace import WorkspaceManager


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def manager(tmp_path, sleeps):
    return WorkspaceManager(str(tmp_path / "ws"), grace_seconds=1.5, sleep=sleeps.append)


class TestWorkspaceManager:

    def test_acquire_returns_clean_path(self, manager):
        """A fresh acquire yields a non-existent path under the root."""
        path = manager.acquire("octo", "my-site")

        assert path == manager.root / "octo-my-site"
        assert not path.exists()
        assert manager.root.is_dir()

    def test_acquire_removes_stale_workspace(self, manager):
        """Leftovers of a previous attempt are removed before reuse."""
        stale = manager.path_for("octo", "my-site")
        (stale / "src").mkdir(parents=True)
        (stale / "src" / "old.txt").write_text("old")

        path = manager.acquire("octo", "my-site")

        assert not path.exists()

    def test_release_removes_workspace_and_snapshots(self, manager, sleeps):
        """Release waits the grace period, then deletes the workspace and its snapshots."""
        path = manager.acquire("octo", "my-site")
        path.mkdir()
        snapshot = manager.snapshot_path("octo", "my-site")
        snapshot.mkdir()

        manager.release("octo", "my-site")

        assert sleeps == [1.5]
        assert not path.exists()
        assert not snapshot.exists()

    def test_release_keeps_other_keys(self, manager):
        """Only snapshots of the released key are removed."""
        manager.root.mkdir(parents=True)
        other = manager.snapshot_path("octo", "my-site-2")
        other.mkdir()

        manager.release("octo", "my-site")

        assert other.exists()

    def test_release_failure_is_only_logged(self, manager, monkeypatch, caplog):
        """Cleanup errors never escape release()."""
        path = manager.acquire("octo", "my-site")
        path.mkdir()

        def broken_rmtree(*args, **kwargs):
            raise OSError("device busy")
        monkeypatch.setattr(workspace_module.shutil, "rmtree", broken_rmtree)

        with caplog.at_level(logging.WARNING):
            manager.release("octo", "my-site")

        assert "device busy" in caplog.text

    @pytest.mark.parametrize("username,repo", [("octo", ".."), ("../etc", "site"), ("octo", "a/b"), ("", "site")])
    def test_unsafe_keys_rejected(self, manager, username, repo):
        """Key components that could escape the root are refused."""
        with pytest.raises(ValueError):
            manager.path_for(username, repo)
