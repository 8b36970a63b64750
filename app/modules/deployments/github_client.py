import time
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from github import Auth, Github, GithubException, UnknownObjectException

from app.modules.deployments.errors import ForkNotReadyError, HostingApiError
from app.modules.deployments.polling import RetryPolicy, poll_until

logger = logging.getLogger(__name__)


class LookupState(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class RepoLookup:
    """Outcome of probing a repository: present, absent, or the probe itself failed."""
    state: LookupState
    repo: Any = None
    error: Optional[str] = None
    status: Optional[int] = None

    @classmethod
    def found(cls, repo: Any) -> "RepoLookup":
        return cls(LookupState.FOUND, repo=repo)

    @classmethod
    def not_found(cls) -> "RepoLookup":
        return cls(LookupState.NOT_FOUND)

    @classmethod
    def failed(cls, error: str, status: Optional[int] = None) -> "RepoLookup":
        return cls(LookupState.ERROR, error=error, status=status)

    @property
    def is_transient(self) -> bool:
        return self.state == LookupState.ERROR and (self.status or 0) >= 500


def _error_message(e: GithubException) -> str:
    data = e.data if isinstance(e.data, dict) else {}
    return data.get("message") or str(e)


class GitHubHostingClient:
    """
    Repository-hosting operations the deploy pipeline needs: fork, rename,
    lookup, and GitHub Pages activation. Calls are idempotent so a redeploy
    can run over the leftovers of a previous attempt.
    """

    def __init__(
        self,
        gh: Github,
        login: str,
        fork_settle_sec: float = 5.0,
        rename_settle_sec: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.gh = gh
        self.login = login
        self.fork_settle_sec = fork_settle_sec
        self.rename_settle_sec = rename_settle_sec
        self._sleep = sleep

    @classmethod
    def from_token(cls, token: str, login: str, settings, sleep: Callable[[float], None] = time.sleep) -> "GitHubHostingClient":
        gh = Github(auth=Auth.Token(token), base_url=settings.github_api_url.rstrip("/"))
        return cls(
            gh,
            login,
            fork_settle_sec=settings.fork_settle_sec,
            rename_settle_sec=settings.rename_settle_sec,
            sleep=sleep,
        )

    def lookup_repo(self, owner: str, repo: str) -> RepoLookup:
        try:
            return RepoLookup.found(self.gh.get_repo(f"{owner}/{repo}"))
        except UnknownObjectException:
            return RepoLookup.not_found()
        except GithubException as e:
            logger.warning(f"Lookup of {owner}/{repo} failed: {e.status} {_error_message(e)}")
            return RepoLookup.failed(_error_message(e), status=e.status)

    def ensure_fork(self, owner: str, repo: str, target_owner: str, policy: RetryPolicy) -> str:
        """
        Make sure target_owner owns a fork of owner/repo and return its name.

        Fork creation is asynchronous on GitHub, so after requesting it the
        fork is polled for at most policy.max_attempts times. GitHub answers a
        repeated fork request with the existing fork, which keeps any name an
        earlier rename gave it.

        Raises:
            ForkNotReadyError: The fork never became visible
            HostingApiError: The existence probe or fork request failed
        """
        existing = self.lookup_repo(target_owner, repo)
        if existing.state == LookupState.FOUND:
            logger.info(f"Fork {target_owner}/{repo} already exists")
            return repo
        if existing.state == LookupState.ERROR:
            raise HostingApiError(f"Could not check for existing fork {target_owner}/{repo}: {existing.error}", existing.status)

        try:
            source = self.gh.get_repo(f"{owner}/{repo}")
            if target_owner.lower() == self.login.lower():
                fork = source.create_fork()
            else:
                fork = source.create_fork(organization=target_owner)
        except GithubException as e:
            raise HostingApiError(f"Failed to fork {owner}/{repo}: {_error_message(e)}", e.status)
        fork_name = fork.name
        logger.info(f"Requested fork of {owner}/{repo} into {target_owner}/{fork_name}")

        if self.fork_settle_sec > 0:
            self._sleep(self.fork_settle_sec)

        def fork_visible():
            lookup = self.lookup_repo(target_owner, fork_name)
            if lookup.state == LookupState.FOUND:
                return lookup.repo
            if lookup.state == LookupState.ERROR and not lookup.is_transient:
                raise HostingApiError(f"Failed to check fork {target_owner}/{fork_name}: {lookup.error}", lookup.status)
            return None

        if poll_until(fork_visible, policy, sleep=self._sleep, description=f"fork {target_owner}/{fork_name}") is None:
            raise ForkNotReadyError("Fork not ready")
        return fork_name

    def rename_repo(self, owner: str, repo: str, new_name: str) -> None:
        if repo == new_name:
            return
        try:
            self.gh.get_repo(f"{owner}/{repo}").edit(name=new_name)
        except GithubException as e:
            raise HostingApiError(f"Failed to rename {owner}/{repo} to {new_name}: {_error_message(e)}", e.status)
        logger.info(f"Renamed {owner}/{repo} to {owner}/{new_name}")
        if self.rename_settle_sec > 0:
            self._sleep(self.rename_settle_sec)

    def enable_pages_site(self, owner: str, repo: str, branch: str, path: str = "/") -> None:
        """Publish branch/path with GitHub Pages. An already configured site (409) counts as success."""
        try:
            self.gh.requester.requestJsonAndCheck(
                "POST",
                f"/repos/{owner}/{repo}/pages",
                input={"source": {"branch": branch, "path": path}},
            )
            logger.info(f"GitHub Pages enabled for {owner}/{repo} ({branch}:{path})")
        except GithubException as e:
            if e.status == 409:
                logger.info(f"GitHub Pages already configured for {owner}/{repo}")
                return
            raise HostingApiError(f"Failed to enable GitHub Pages for {owner}/{repo}: {_error_message(e)}", e.status)
