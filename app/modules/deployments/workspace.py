import re
import shutil
import time
import logging
from pathlib import Path
from typing import Callable, List

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "__dist__"
_SAFE_KEY_PART = re.compile(r"^[A-Za-z0-9._-]+$")


class WorkspaceManager:
    """
    One working directory per (username, repo_name) under a common root.

    A workspace is reserved right before cloning (removing whatever a previous
    attempt left behind) and released once the attempt has concluded. Publish
    snapshots live next to the workspace, outside its git work tree.
    """

    def __init__(
        self,
        root: str,
        grace_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.root = Path(root).resolve()
        self.grace_seconds = grace_seconds
        self._sleep = sleep

    @staticmethod
    def key(username: str, repo_name: str) -> str:
        for part in (username, repo_name):
            if not part or not _SAFE_KEY_PART.match(part) or part in (".", ".."):
                raise ValueError(f"Unsafe workspace key component: {part!r}")
        return f"{username}-{repo_name}"

    def path_for(self, username: str, repo_name: str) -> Path:
        return self.root / self.key(username, repo_name)

    def acquire(self, username: str, repo_name: str) -> Path:
        """Return a clean, non-existent workspace path; the clone creates it."""
        path = self.path_for(username, repo_name)
        self.root.mkdir(parents=True, exist_ok=True)
        if path.exists():
            logger.info(f"Removing stale workspace: {path}")
            shutil.rmtree(path)
        self._remove_snapshots(username, repo_name)
        return path

    def snapshot_path(self, username: str, repo_name: str) -> Path:
        stamp = int(time.time() * 1000)
        return self.root / f"{SNAPSHOT_PREFIX}{self.key(username, repo_name)}@{stamp}"

    def release(self, username: str, repo_name: str) -> None:
        """Best-effort removal; failures are logged, never raised."""
        path = self.path_for(username, repo_name)
        if self.grace_seconds > 0:
            # Let git/npm children exit and drop their file handles
            self._sleep(self.grace_seconds)
        try:
            if path.exists():
                shutil.rmtree(path)
                logger.info(f"Cleaned up workspace: {path}")
        except Exception as e:
            logger.warning(f"Failed to cleanup workspace {path}: {str(e)}")
        try:
            self._remove_snapshots(username, repo_name)
        except Exception as e:
            logger.warning(f"Failed to cleanup publish snapshots for {path.name}: {str(e)}")

    def _snapshots(self, username: str, repo_name: str) -> List[Path]:
        if not self.root.exists():
            return []
        prefix = f"{SNAPSHOT_PREFIX}{self.key(username, repo_name)}@"
        return [p for p in self.root.iterdir() if p.name.startswith(prefix)]

    def _remove_snapshots(self, username: str, repo_name: str) -> None:
        for snapshot in self._snapshots(username, repo_name):
            shutil.rmtree(snapshot, ignore_errors=True)
