import json
import shutil
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from app.modules.deployments.errors import ConfigPayloadError
from app.modules.deployments.frameworks import Framework, FrameworkProfile, base_path

logger = logging.getLogger(__name__)

DATA_FILE = "data.json"
PUBLIC_DIR = "public"
ASSETS_DIR = "assets"

USER_IMAGE = "user_image"
PROJECT_IMAGE = "project_image"


@dataclass(frozen=True)
class StagedAsset:
    """An uploaded file already written to local disk by the HTTP layer."""
    kind: str
    original_filename: str
    path: Path

    @property
    def extension(self) -> str:
        return Path(self.original_filename or "").suffix.lower()


@dataclass
class SiteContent:
    """What merge_site_content wrote into the project, for the publisher to carry over."""
    payload: dict
    assets_dir: Path
    data_file: Path


def parse_config_payload(raw: Optional[str]) -> dict:
    """
    Parse the client's configuration string.

    Raises:
        ConfigPayloadError: Not JSON, not an object, or wrongly shaped sections
    """
    if raw is None or not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        raise ConfigPayloadError("Invalid configData JSON")
    validate_config_payload(payload)
    return payload


def validate_config_payload(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise ConfigPayloadError("Configuration payload must be a JSON object")
    # A null section is the same as a missing one
    personal = payload.get("personal")
    if personal is not None and not isinstance(personal, dict):
        raise ConfigPayloadError("'personal' must be an object")
    projects = payload.get("projects")
    if projects is not None:
        if not isinstance(projects, list):
            raise ConfigPayloadError("'projects' must be an array")
        if projects and not isinstance(projects[0], dict):
            raise ConfigPayloadError("'projects' entries must be objects")
        images = projects[0].get("images") if projects else None
        if images is not None and not isinstance(images, list):
            raise ConfigPayloadError("'projects[0].images' must be an array")


def assets_root(project_root: Path, profile: FrameworkProfile) -> Path:
    """Bundlers copy public/ into their output verbatim; plain sites are served as-is."""
    if profile.framework == Framework.STATIC_HTML:
        return Path(project_root) / ASSETS_DIR
    return Path(project_root) / PUBLIC_DIR / ASSETS_DIR


def merge_site_content(
    project_root: Path,
    profile: FrameworkProfile,
    repo_name: str,
    payload: dict,
    assets: List[StagedAsset],
) -> SiteContent:
    """
    Copy uploaded images into the project, point the payload at them and
    write the payload out as data.json.

    Image URLs carry the /<repo_name>/ prefix so they resolve once the site
    is hosted under that sub-path.
    """
    validate_config_payload(payload)
    root = Path(project_root)
    prefix = base_path(repo_name) + ASSETS_DIR
    target = assets_root(root, profile)

    user_images = [a for a in assets if a.kind == USER_IMAGE]
    project_images = [a for a in assets if a.kind == PROJECT_IMAGE]

    if user_images:
        asset = user_images[0]
        file_name = f"profile{asset.extension}"
        dest = target / "user" / file_name
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(asset.path, dest)
        if payload.get("personal") is None:
            payload["personal"] = {}
        payload["personal"]["profileImage"] = f"{prefix}/user/{file_name}"
        logger.info(f"Added profile image {file_name}")

    if project_images:
        if payload.get("projects") is None:
            payload["projects"] = []
        projects = payload["projects"]
        if not projects:
            projects.append({})
        if projects[0].get("images") is None:
            projects[0]["images"] = []
        images = projects[0]["images"]
        for index, asset in enumerate(project_images, start=1):
            file_name = f"project-{index}{asset.extension}"
            dest = target / "projects" / file_name
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(asset.path, dest)
            images.append(f"{prefix}/projects/{file_name}")
        logger.info(f"Added {len(project_images)} project image(s)")

    content = json.dumps(payload, indent=2)
    data_file = root / DATA_FILE
    data_file.write_text(content, encoding="utf-8")
    if profile.framework != Framework.STATIC_HTML:
        public_dir = root / PUBLIC_DIR
        public_dir.mkdir(parents=True, exist_ok=True)
        (public_dir / DATA_FILE).write_text(content, encoding="utf-8")

    return SiteContent(payload=payload, assets_dir=target, data_file=data_file)
