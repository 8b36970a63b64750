from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Used by the deploy pipeline to write records past RLS

    # GitHub
    github_api_url: str = "https://api.github.com"
    github_web_url: str = "https://github.com"
    pages_domain: str = "github.io"
    pages_branch: str = "gh-pages"
    pages_path: str = "/"
    deploy_commit_message: str = "Deploy via Template Hub"
    git_author_name: str = "Template Hub"
    git_author_email: str = "deploy@templatehub.local"

    # Fernet key used to decrypt stored GitHub access tokens
    token_encryption_key: str = ""

    # Workspaces
    workspace_root: str = "./tmp/workspaces"
    cleanup_grace_sec: float = 1.0

    # Hosting-side propagation lag
    fork_settle_sec: float = 5.0
    fork_poll_attempts: int = 10
    fork_poll_interval_sec: float = 3.0
    rename_settle_sec: float = 3.0

    # Per-step subprocess deadlines
    git_timeout_sec: int = 300
    install_timeout_sec: int = 900
    build_timeout_sec: int = 900

    # App
    app_name: str = "templatehub-deployer"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def pages_url(self, username: str, repo_name: str) -> str:
        return f"https://{username}.{self.pages_domain}/{repo_name}/"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()


def get_settings() -> Settings:
    return settings
