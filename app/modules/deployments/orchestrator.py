"""
Drives one deployment attempt from fork to live GitHub Pages site.

Every step runs synchronously in the calling thread. The deployment record is
persisted on each transition so a poller sees progress while the attempt is
still running. The workspace is acquired at CLONING and released exactly once
after the terminal status has been written, whatever the outcome.
"""
import time
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from fastapi import HTTPException

from app.config.settings import Settings
from app.core.crypto import TokenCipher
from app.modules.deployments import process_registry
from app.modules.deployments.build_runner import BuildRunner
from app.modules.deployments.command_runner import CommandRunner
from app.modules.deployments.errors import DeploymentCancelledError, HostingApiError
from app.modules.deployments.frameworks import configure, detect, matches_tech_stack
from app.modules.deployments.git_driver import GitDriver
from app.modules.deployments.github_client import GitHubHostingClient, LookupState
from app.modules.deployments.polling import RetryPolicy
from app.modules.deployments.publisher import Publisher
from app.modules.deployments.schemas import DeploymentResponse, DeploymentStatus
from app.modules.deployments.service import DeploymentService
from app.modules.deployments.site_content import StagedAsset, merge_site_content
from app.modules.deployments.workspace import WorkspaceManager
from app.modules.templates.schemas import TemplateResponse
from app.modules.templates.service import parse_source_repo
from app.modules.users.schemas import GitHubIdentity

logger = logging.getLogger(__name__)


@dataclass
class DeploymentOutcome:
    success: bool
    deployment_id: str
    deployed_url: Optional[str] = None
    repo_url: Optional[str] = None
    message: Optional[str] = None


def _error_text(e: Exception) -> str:
    if isinstance(e, HTTPException):
        return str(e.detail)
    return str(e) or e.__class__.__name__


class DeploymentOrchestrator:
    def __init__(
        self,
        deployments: DeploymentService,
        settings: Settings,
        cipher: TokenCipher,
        workspaces: Optional[WorkspaceManager] = None,
        hosting_factory: Optional[Callable[[str, str], GitHubHostingClient]] = None,
        runner_factory: Optional[Callable[[str], CommandRunner]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.deployments = deployments
        self.settings = settings
        self.cipher = cipher
        self.workspaces = workspaces or WorkspaceManager(
            settings.workspace_root, grace_seconds=settings.cleanup_grace_sec, sleep=sleep
        )
        self.hosting_factory = hosting_factory or (
            lambda token, login: GitHubHostingClient.from_token(token, login, settings, sleep=sleep)
        )
        self.runner_factory = runner_factory or (lambda deployment_id: CommandRunner(deployment_id=deployment_id))
        self.fork_policy = RetryPolicy(settings.fork_poll_attempts, settings.fork_poll_interval_sec)

    def _advance(self, deployment_id: str, status: DeploymentStatus, log: str, **fields) -> None:
        logger.info(f"[{deployment_id}] {status.value}: {log}")
        self.deployments.update_deployment_status(deployment_id, status, log=log, **fields)

    def _check_cancelled(self, deployment_id: str) -> None:
        if process_registry.is_cancelled(deployment_id):
            raise DeploymentCancelledError("Deployment cancelled")

    def _fail(self, deployment_id: str, message: str) -> None:
        try:
            self.deployments.update_deployment_status(
                deployment_id,
                DeploymentStatus.FAILED,
                log=f"Deployment failed: {message}",
                error_message=message,
            )
        except Exception as e:
            logger.error(f"Failed to set deployment {deployment_id} status to FAILED: {_error_text(e)}")

    def run(
        self,
        deployment: DeploymentResponse,
        template: TemplateResponse,
        identity: GitHubIdentity,
        config_payload: dict,
        assets: List[StagedAsset],
    ) -> DeploymentOutcome:
        deployment_id = deployment.id
        username = identity.username
        repo_name = deployment.repo_name
        repo_url = f"{self.settings.github_web_url.rstrip('/')}/{username}/{repo_name}"

        process_registry.begin(deployment_id)
        runner = self.runner_factory(deployment_id)
        workspace_acquired = False
        try:
            token = self.cipher.decrypt(identity.encrypted_access_token)
            runner.add_secret(token)
            hosting = self.hosting_factory(token, username)
            git = GitDriver(
                runner,
                web_url=self.settings.github_web_url,
                timeout=self.settings.git_timeout_sec,
                author_name=self.settings.git_author_name,
                author_email=self.settings.git_author_email,
            )
            builds = BuildRunner(
                runner,
                install_timeout=self.settings.install_timeout_sec,
                build_timeout=self.settings.build_timeout_sec,
            )
            publisher = Publisher(git, self.workspaces, self.settings)
            source = parse_source_repo(template.source_repo_url)

            # Fork
            self._advance(deployment_id, DeploymentStatus.FORKING, f"Forking {source.owner}/{source.name}")
            existing = hosting.lookup_repo(username, repo_name)
            if existing.state == LookupState.FOUND:
                self._advance(deployment_id, DeploymentStatus.FORKING, f"Reusing existing repository {username}/{repo_name}")
            elif existing.state == LookupState.ERROR:
                raise HostingApiError(f"Could not check repository {username}/{repo_name}: {existing.error}", existing.status)
            else:
                fork_name = hosting.ensure_fork(source.owner, source.name, username, self.fork_policy)
                hosting.rename_repo(username, fork_name, repo_name)
            self._check_cancelled(deployment_id)

            # Clone
            self._advance(
                deployment_id, DeploymentStatus.CLONING, f"Cloning {username}/{repo_name}", user_repo_url=repo_url
            )
            workdir = self.workspaces.acquire(username, repo_name)
            workspace_acquired = True
            git.clone(git.repo_url(username, repo_name), workdir)
            git.rewrite_remote_credentials(workdir, token, username, repo_name)
            self._check_cancelled(deployment_id)

            # Configure
            self._advance(deployment_id, DeploymentStatus.CONFIGURING, "Detecting project type")
            profile = detect(workdir, repo_name)
            if not matches_tech_stack(profile, template.tech_stack):
                logger.warning(
                    f"[{deployment_id}] Template declares {template.tech_stack} but {profile.framework.value} was detected"
                )
            configure(workdir, profile, repo_name, username, pages_domain=self.settings.pages_domain)
            content = merge_site_content(workdir, profile, repo_name, config_payload, assets)
            self._advance(
                deployment_id, DeploymentStatus.CONFIGURING,
                f"Configured {profile.framework.value} project for /{repo_name}/"
            )
            self._check_cancelled(deployment_id)

            # Build
            self._advance(deployment_id, DeploymentStatus.BUILDING, "Installing dependencies and building")
            builds.install(workdir)
            builds.build(workdir, profile)
            output_dir = builds.resolve_output(workdir, profile)
            self._check_cancelled(deployment_id)

            # Publish
            self._advance(deployment_id, DeploymentStatus.DEPLOYING, f"Publishing to {self.settings.pages_branch}")
            snapshot = publisher.snapshot(output_dir, content, username, repo_name)
            deployed_url = publisher.publish(workdir, snapshot, username, repo_name)
            hosting.enable_pages_site(username, repo_name, self.settings.pages_branch, self.settings.pages_path)

            self._advance(
                deployment_id, DeploymentStatus.SUCCESS, f"Deployed to {deployed_url}", deployed_url=deployed_url
            )
            return DeploymentOutcome(
                success=True, deployment_id=deployment_id, deployed_url=deployed_url, repo_url=repo_url
            )
        except Exception as e:
            message = runner.redact(_error_text(e))
            logger.error(f"[{deployment_id}] Deployment failed: {message}")
            self._fail(deployment_id, message)
            return DeploymentOutcome(success=False, deployment_id=deployment_id, repo_url=repo_url, message=message)
        finally:
            if workspace_acquired:
                self.workspaces.release(username, repo_name)
            process_registry.clear(deployment_id)
