"""
Pytest configuration and fixtures for the deployer tests.

No test touches the network, GitHub, Supabase, git or npm: collaborators are
replaced with the doubles from tests/fakes.py and every delay is zero.
"""
import pytest
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient

from app.config.settings import Settings
from app.core.crypto import TokenCipher
from app.modules.deployments import process_registry
from app.modules.users.schemas import GitHubIdentity
from tests.fakes import FakeHosting, FakeRunner, FakeSupabase

TEST_ENCRYPTION_KEY = Fernet.generate_key().decode()
TEST_USER_ID = "user-1"
TEST_GITHUB_LOGIN = "octo"
TEST_GITHUB_TOKEN = "ghp_testtoken/with+chars"


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        workspace_root=str(tmp_path / "workspaces"),
        token_encryption_key=TEST_ENCRYPTION_KEY,
        cleanup_grace_sec=0,
        fork_settle_sec=0,
        fork_poll_attempts=3,
        fork_poll_interval_sec=0,
        rename_settle_sec=0,
    )


@pytest.fixture
def cipher():
    return TokenCipher(TEST_ENCRYPTION_KEY)


@pytest.fixture
def identity(cipher):
    return GitHubIdentity(
        user_id=TEST_USER_ID,
        username=TEST_GITHUB_LOGIN,
        encrypted_access_token=cipher.encrypt(TEST_GITHUB_TOKEN),
    )


@pytest.fixture
def runner():
    return FakeRunner(deployment_id="dep-test")


@pytest.fixture
def hosting():
    return FakeHosting()


@pytest.fixture
def template_row(fake_db):
    return fake_db.seed("templates", {
        "name": "Portfolio",
        "description": "One-page developer portfolio",
        "tech_stack": "React + Vite",
        "source_repo_url": "https://github.com/tmpl-org/portfolio-template",
        "preview_url": "https://tmpl-org.github.io/portfolio-template/",
    })


@pytest.fixture(autouse=True)
def clean_process_registry():
    yield
    # Module-level state; drop anything a test left behind
    with process_registry._lock:
        process_registry._registry.clear()
        process_registry._cancelled.clear()
        process_registry._active.clear()


@pytest.fixture
def client(fake_db, identity, settings):
    """TestClient with auth, Supabase and settings overridden."""
    from app.main import app
    from app.config.settings import get_settings
    from app.core.dependencies import get_current_user_id, get_github_identity
    from app.database.supabase_client import get_supabase, get_service_supabase

    app.dependency_overrides[get_current_user_id] = lambda: {"id": TEST_USER_ID, "email": "octo@example.com"}
    app.dependency_overrides[get_github_identity] = lambda: identity
    app.dependency_overrides[get_supabase] = lambda: fake_db
    app.dependency_overrides[get_service_supabase] = lambda: fake_db
    app.dependency_overrides[get_settings] = lambda: settings

    yield TestClient(app)

    app.dependency_overrides.clear()
