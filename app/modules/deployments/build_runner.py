import logging
from pathlib import Path
from typing import Optional

from app.modules.deployments.command_runner import CommandRunner
from app.modules.deployments.errors import BuildOutputNotFoundError
from app.modules.deployments.frameworks import PACKAGE_MANIFEST, FrameworkProfile, resolve_output_dir

logger = logging.getLogger(__name__)

LOCKFILE = "package-lock.json"


class BuildRunner:
    """Installs dependencies and runs the framework build with npm."""

    def __init__(self, runner: CommandRunner, install_timeout: Optional[float] = 900, build_timeout: Optional[float] = 900):
        self.runner = runner
        self.install_timeout = install_timeout
        self.build_timeout = build_timeout

    def install(self, project_root: Path) -> bool:
        root = Path(project_root)
        if not (root / PACKAGE_MANIFEST).is_file():
            logger.info("No package.json, skipping dependency install")
            return False
        args = ["npm", "ci"] if (root / LOCKFILE).is_file() else ["npm", "install"]
        self.runner.run(args, cwd=root, timeout=self.install_timeout)
        return True

    def build(self, project_root: Path, profile: FrameworkProfile) -> bool:
        if not profile.needs_build:
            logger.info(f"{profile.framework.value} project has no build step")
            return False
        self.runner.run(list(profile.build_command), cwd=Path(project_root), timeout=self.build_timeout)
        return True

    def resolve_output(self, project_root: Path, profile: FrameworkProfile) -> Path:
        output = resolve_output_dir(project_root, profile)
        if not output.is_dir():
            raise BuildOutputNotFoundError(f"Build output not found: {profile.output_dir}")
        return output
