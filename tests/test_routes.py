"""
Tests for the HTTP API under /api/v1.

The orchestrator is replaced with a mock; pipeline behaviour is covered in
test_orchestrator.py.
"""
from unittest.mock import MagicMock

import pytest

from app.modules.deployments import process_registry
from app.modules.deployments.orchestrator import DeploymentOutcome
from app.modules.deployments.routes import get_orchestrator
from tests.conftest import TEST_USER_ID


@pytest.fixture
def orchestrator(client):
    from app.main import app

    mock = MagicMock()
    app.dependency_overrides[get_orchestrator] = lambda: mock
    return mock


def seed_deployment(fake_db, **fields):
    row = {
        "user_id": TEST_USER_ID,
        "template_id": "tpl-1",
        "repo_name": "my-site",
        "status": "BUILDING",
        "logs": ["Deployment started", "Installing dependencies and building"],
    }
    row.update(fields)
    return fake_db.seed("deployments", row)


class TestHealth:

    def test_health(self, client):
        """Liveness probe is always healthy."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestDeploy:

    def test_success(self, client, orchestrator, template_row, fake_db):
        """A successful run returns the public URL and staged uploads reach the pipeline."""
        seen = {}

        def run(deployment, template, identity, payload, assets):
            seen["assets"] = [(a.kind, a.original_filename, a.path.read_bytes()) for a in assets]
            seen["payload"] = payload
            seen["template"] = template.source_repo_url
            return DeploymentOutcome(
                success=True,
                deployment_id=deployment.id,
                deployed_url="https://octo.github.io/my-site/",
                repo_url="https://github.com/octo/my-site",
            )
        orchestrator.run.side_effect = run

        response = client.post(
            "/api/v1/deployments",
            data={"template_id": template_row["id"], "repo_name": "my-site", "config_data": '{"personal": {"name": "Ada"}}'},
            files=[
                ("user_image", ("me.png", b"me", "image/png")),
                ("project_images", ("a.jpg", b"a", "image/jpeg")),
                ("project_images", ("b.jpg", b"b", "image/jpeg")),
            ],
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["deployed_url"] == "https://octo.github.io/my-site/"
        assert data["repo_url"] == "https://github.com/octo/my-site"
        assert data["deployment_id"] == fake_db.tables["deployments"][0]["id"]
        assert seen["assets"] == [
            ("user_image", "me.png", b"me"),
            ("project_image", "a.jpg", b"a"),
            ("project_image", "b.jpg", b"b"),
        ]
        assert seen["payload"] == {"personal": {"name": "Ada"}}
        assert seen["template"] == "https://github.com/tmpl-org/portfolio-template"

    def test_failure_payload(self, client, orchestrator, template_row):
        """A failed run answers 500 with the message and deployment id."""
        orchestrator.run.side_effect = lambda deployment, *args: DeploymentOutcome(
            success=False, deployment_id=deployment.id, message="Fork not ready"
        )

        response = client.post(
            "/api/v1/deployments",
            data={"template_id": template_row["id"], "repo_name": "my-site", "config_data": "{}"},
        )

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["message"] == "Fork not ready"
        assert data["deployment_id"]

    def test_invalid_config_data(self, client, orchestrator, template_row):
        """Malformed configData is rejected before any record is created."""
        response = client.post(
            "/api/v1/deployments",
            data={"template_id": template_row["id"], "repo_name": "my-site", "config_data": "{oops"},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid configData JSON"
        orchestrator.run.assert_not_called()

    def test_invalid_repo_name(self, client, orchestrator, template_row):
        """Repository names outside GitHub's character set are rejected."""
        response = client.post(
            "/api/v1/deployments",
            data={"template_id": template_row["id"], "repo_name": "my site!", "config_data": "{}"},
        )

        assert response.status_code == 400
        orchestrator.run.assert_not_called()

    def test_too_many_project_images(self, client, orchestrator, template_row):
        """At most ten project images are accepted."""
        files = [("project_images", (f"p{i}.png", b"x", "image/png")) for i in range(11)]

        response = client.post(
            "/api/v1/deployments",
            data={"template_id": template_row["id"], "repo_name": "my-site", "config_data": "{}"},
            files=files,
        )

        assert response.status_code == 400
        orchestrator.run.assert_not_called()

    def test_unknown_template(self, client, orchestrator):
        """An unknown template id is 404."""
        response = client.post(
            "/api/v1/deployments",
            data={"template_id": "missing", "repo_name": "my-site", "config_data": "{}"},
        )

        assert response.status_code == 404
        orchestrator.run.assert_not_called()

    def test_concurrent_deploy_rejected(self, client, orchestrator, template_row, fake_db):
        """A second deploy of a repo with a running attempt is a conflict."""
        seed_deployment(fake_db, status="BUILDING")

        response = client.post(
            "/api/v1/deployments",
            data={"template_id": template_row["id"], "repo_name": "my-site", "config_data": "{}"},
        )

        assert response.status_code == 409
        orchestrator.run.assert_not_called()


class TestDeploymentQueries:

    def test_list_and_history(self, client, fake_db):
        """Both listing endpoints return only the caller's records, newest first."""
        older = seed_deployment(fake_db, status="SUCCESS")
        newer = seed_deployment(fake_db, status="FAILED", repo_name="other")
        seed_deployment(fake_db, user_id="user-2")

        for path in ("/api/v1/deployments", "/api/v1/deployments/history"):
            response = client.get(path)
            assert response.status_code == 200
            assert [d["id"] for d in response.json()] == [newer["id"], older["id"]]

    def test_get_and_logs(self, client, fake_db):
        """Polling returns the log trail and whether more is coming."""
        row = seed_deployment(fake_db)

        detail = client.get(f"/api/v1/deployments/{row['id']}")
        logs = client.get(f"/api/v1/deployments/{row['id']}/logs")

        assert detail.status_code == 200
        assert detail.json()["status"] == "BUILDING"
        assert logs.json() == {
            "deployment_id": row["id"],
            "logs": ["Deployment started", "Installing dependencies and building"],
            "status": "BUILDING",
            "has_more": True,
        }

    def test_other_users_deployment_hidden(self, client, fake_db):
        """Records of other users are not found."""
        row = seed_deployment(fake_db, user_id="user-2")

        assert client.get(f"/api/v1/deployments/{row['id']}").status_code == 404
        assert client.get(f"/api/v1/deployments/{row['id']}/logs").status_code == 404


class TestCancel:

    def test_cancel_running_attempt(self, client, fake_db):
        """A running attempt is flagged; the pipeline records FAILED itself."""
        row = seed_deployment(fake_db)
        process_registry.begin(row["id"])

        response = client.post(f"/api/v1/deployments/{row['id']}/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == "BUILDING"
        assert process_registry.is_cancelled(row["id"])

    def test_cancel_orphaned_attempt(self, client, fake_db):
        """An attempt not running in this process is marked FAILED directly."""
        row = seed_deployment(fake_db)

        response = client.post(f"/api/v1/deployments/{row['id']}/cancel")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "FAILED"
        assert data["error_message"] == "Deployment cancelled"
        assert data["logs"][-1] == "Deployment cancelled"

    def test_cancel_finished_attempt(self, client, fake_db):
        """Finished attempts cannot be cancelled."""
        row = seed_deployment(fake_db, status="SUCCESS")

        response = client.post(f"/api/v1/deployments/{row['id']}/cancel")

        assert response.status_code == 400
