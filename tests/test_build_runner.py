"""
Tests for dependency install, build and output verification.
"""
import pytest

from app.modules.deployments.build_runner import BuildRunner
from app.modules.deployments.errors import BuildOutputNotFoundError, CommandError
from app.modules.deployments.frameworks import Framework, FrameworkProfile

VITE = FrameworkProfile(Framework.VITE, ["npm", "run", "build"], "dist", "vite.config.js")
STATIC = FrameworkProfile(Framework.STATIC_HTML, None, ".")


class TestBuildRunner:

    def test_install_uses_ci_with_lockfile(self, tmp_path, runner):
        """A lockfile means a reproducible npm ci."""
        (tmp_path / "package.json").write_text("{}")
        (tmp_path / "package-lock.json").write_text("{}")

        assert BuildRunner(runner, install_timeout=60).install(tmp_path)

        assert runner.calls == [(["npm", "ci"], tmp_path, 60)]

    def test_install_without_lockfile(self, tmp_path, runner):
        """No lockfile falls back to npm install."""
        (tmp_path / "package.json").write_text("{}")

        BuildRunner(runner).install(tmp_path)

        assert runner.commands() == ["npm install"]

    def test_install_skipped_without_package_json(self, tmp_path, runner):
        """Plain sites have nothing to install."""
        assert not BuildRunner(runner).install(tmp_path)
        assert runner.calls == []

    def test_build_runs_profile_command(self, tmp_path, runner):
        """The framework's build command runs in the project root with the build deadline."""
        BuildRunner(runner, build_timeout=120).build(tmp_path, VITE)

        assert runner.calls == [(["npm", "run", "build"], tmp_path, 120)]

    def test_build_skipped_for_static(self, tmp_path, runner):
        """Static profiles have no build step."""
        assert not BuildRunner(runner).build(tmp_path, STATIC)
        assert runner.calls == []

    def test_build_failure_propagates(self, tmp_path, runner):
        """A failing build surfaces as CommandError."""
        def fail(args, cwd):
            raise CommandError("Command failed with exit code 1: npm run build\nerror TS2304")
        runner.on(("npm", "run", "build"), fail)

        with pytest.raises(CommandError, match="TS2304"):
            BuildRunner(runner).build(tmp_path, VITE)

    def test_resolve_output(self, tmp_path, runner):
        """An existing output directory is returned."""
        (tmp_path / "dist").mkdir()

        assert BuildRunner(runner).resolve_output(tmp_path, VITE) == tmp_path / "dist"

    def test_missing_output(self, tmp_path, runner):
        """A build that produced nothing is fatal."""
        with pytest.raises(BuildOutputNotFoundError, match="Build output not found: dist"):
            BuildRunner(runner).resolve_output(tmp_path, VITE)
