import shutil
import logging
from pathlib import Path
from typing import Optional

from app.config.settings import Settings
from app.modules.deployments.git_driver import GitDriver
from app.modules.deployments.site_content import ASSETS_DIR, DATA_FILE, SiteContent
from app.modules.deployments.workspace import WorkspaceManager

logger = logging.getLogger(__name__)

SNAPSHOT_IGNORE = shutil.ignore_patterns(".git", "node_modules")


class Publisher:
    """Moves a build output onto the hosting branch of the user's repository."""

    def __init__(self, git: GitDriver, workspaces: WorkspaceManager, settings: Settings):
        self.git = git
        self.workspaces = workspaces
        self.settings = settings

    def snapshot(self, output_dir: Path, content: Optional[SiteContent], username: str, repo_name: str) -> Path:
        """
        Copy output_dir next to the workspace, outside the git work tree, so the branch
        switch in publish() cannot delete it. Merged assets and data.json are
        added when the build did not already carry them over.
        """
        output_dir = Path(output_dir)
        dest = self.workspaces.snapshot_path(username, repo_name)
        if dest.exists():
            shutil.rmtree(dest)
        shutil.copytree(output_dir, dest, ignore=SNAPSHOT_IGNORE)

        if content is not None:
            if content.assets_dir.is_dir():
                shutil.copytree(content.assets_dir, dest / ASSETS_DIR, dirs_exist_ok=True)
            if not (dest / DATA_FILE).exists() and content.data_file.is_file():
                shutil.copy2(content.data_file, dest / DATA_FILE)
        logger.info(f"Snapshot of {output_dir} taken at {dest}")
        return dest

    def publish(self, repo_dir: Path, snapshot_dir: Path, username: str, repo_name: str) -> str:
        """Force-push the snapshot as the pages branch and return the public URL."""
        try:
            committed = self.git.publish_branch(
                repo_dir,
                snapshot_dir,
                self.settings.pages_branch,
                self.settings.deploy_commit_message,
            )
        finally:
            shutil.rmtree(snapshot_dir, ignore_errors=True)
        if not committed:
            logger.info(f"{username}/{repo_name} already up to date on {self.settings.pages_branch}")
        return self.settings.pages_url(username, repo_name)
