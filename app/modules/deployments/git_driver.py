import shutil
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote, urlparse

from app.modules.deployments.command_runner import CommandRunner

logger = logging.getLogger(__name__)


def _clear_work_tree(repo_dir: Path) -> None:
    """Delete everything in repo_dir except .git"""
    for child in repo_dir.iterdir():
        if child.name == ".git":
            continue
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def _restore_snapshot(snapshot_dir: Path, repo_dir: Path) -> None:
    for src in snapshot_dir.iterdir():
        if src.name == ".git":
            continue
        dest = repo_dir / src.name
        if src.is_dir():
            shutil.copytree(src, dest)
        else:
            shutil.copy2(src, dest)


class GitDriver:
    """git CLI operations against a deployment workspace."""

    def __init__(
        self,
        runner: CommandRunner,
        web_url: str = "https://github.com",
        timeout: Optional[float] = 300,
        author_name: str = "Template Hub",
        author_email: str = "deploy@templatehub.local",
    ):
        self.runner = runner
        self.web_url = web_url.rstrip("/")
        self.timeout = timeout
        self.author_name = author_name
        self.author_email = author_email

    def _git(self, repo_dir: Path, *args: str, check: bool = True):
        return self.runner.run(["git", *args], cwd=repo_dir, timeout=self.timeout, check=check)

    def repo_url(self, owner: str, repo: str) -> str:
        return f"{self.web_url}/{owner}/{repo}.git"

    def clone(self, remote_url: str, dest_dir: Path) -> None:
        dest_dir = Path(dest_dir)
        dest_dir.parent.mkdir(parents=True, exist_ok=True)
        self.runner.run(["git", "clone", remote_url, str(dest_dir)], timeout=self.timeout)
        logger.info(f"Cloned {remote_url} into {dest_dir}")

    def authenticated_url(self, token: str, owner: str, repo: str) -> str:
        parsed = urlparse(self.web_url)
        safe_token = quote(token, safe="")
        return f"{parsed.scheme}://x-access-token:{safe_token}@{parsed.netloc}/{owner}/{repo}.git"

    def rewrite_remote_credentials(self, dest_dir: Path, token: str, owner: str, repo: str) -> None:
        """
        Point origin at a URL carrying the short-lived token and drop any local
        credential helper, so the embedded token is the only credential in
        effect and nothing outlives the workspace.
        """
        self.runner.add_secret(token)
        self.runner.add_secret(quote(token, safe=""))
        self._git(dest_dir, "remote", "set-url", "origin", self.authenticated_url(token, owner, repo))
        # Exit code 5 just means no helper was configured
        self._git(dest_dir, "config", "--local", "--unset-all", "credential.helper", check=False)
        self._git(dest_dir, "config", "--local", "user.name", self.author_name)
        self._git(dest_dir, "config", "--local", "user.email", self.author_email)

    def _branch_exists_local(self, repo_dir: Path, branch: str) -> bool:
        result = self._git(repo_dir, "rev-parse", "--verify", "--quiet", f"refs/heads/{branch}", check=False)
        return result.returncode == 0

    def _has_changes(self, repo_dir: Path) -> bool:
        result = self._git(repo_dir, "status", "--porcelain")
        return bool(result.output.strip())

    def publish_branch(self, repo_dir: Path, snapshot_dir: Path, branch: str, message: str) -> bool:
        """
        Replace the contents of branch with snapshot_dir and force-push it.

        The branch is created as an orphan (no history) unless it already
        exists locally. A commit is made only when the tree actually changed.

        Returns:
            True if a new commit was created
        """
        repo_dir = Path(repo_dir)
        if self._branch_exists_local(repo_dir, branch):
            self._git(repo_dir, "checkout", "-f", branch)
        else:
            self._git(repo_dir, "checkout", "--orphan", branch)
        self._git(repo_dir, "reset", "--hard")
        self._git(repo_dir, "clean", "-fdx")
        _clear_work_tree(repo_dir)
        _restore_snapshot(Path(snapshot_dir), repo_dir)
        self._git(repo_dir, "add", "-A")

        committed = False
        if self._has_changes(repo_dir):
            self._git(repo_dir, "commit", "-m", message)
            committed = True
        else:
            logger.info(f"No changes to publish on {branch}, skipping commit")

        self._git(repo_dir, "push", "-f", "origin", branch)
        return committed
