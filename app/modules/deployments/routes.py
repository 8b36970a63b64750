import shutil
import tempfile
import logging
from pathlib import Path
from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from fastapi.responses import JSONResponse
from app.config.settings import Settings, get_settings
from app.core.crypto import TokenCipher
from app.core.dependencies import get_current_user_id, get_github_identity, get_token_cipher
from app.database.supabase_client import get_supabase, get_service_supabase
from app.modules.deployments.schemas import (
    DeploymentCreate, DeploymentResponse, DeploymentLogsResponse, DeploymentStatus, DeployResult
)
from app.modules.deployments.service import DeploymentService
from app.modules.deployments.orchestrator import DeploymentOrchestrator
from app.modules.deployments.errors import ConfigPayloadError
from app.modules.deployments.site_content import PROJECT_IMAGE, USER_IMAGE, StagedAsset, parse_config_payload
from app.modules.deployments import process_registry
from app.modules.templates.service import TemplateService
from app.modules.users.schemas import GitHubIdentity
from pydantic import ValidationError
from supabase import Client
from typing import List, Dict, Optional

logger = logging.getLogger(__name__)

MAX_PROJECT_IMAGES = 10

router = APIRouter(prefix="/deployments", tags=["deployments"])


def get_deployment_service(supabase: Client = Depends(get_supabase)) -> DeploymentService:
    return DeploymentService(supabase)


def get_pipeline_deployment_service(supabase: Client = Depends(get_service_supabase)) -> DeploymentService:
    """Record store used while deploying; service-role client so status updates are not blocked by RLS"""
    return DeploymentService(supabase)


def get_template_service(supabase: Client = Depends(get_supabase)) -> TemplateService:
    return TemplateService(supabase)


def get_orchestrator(
    deployments: DeploymentService = Depends(get_pipeline_deployment_service),
    cipher: TokenCipher = Depends(get_token_cipher),
    settings: Settings = Depends(get_settings),
) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(deployments, settings, cipher)


def _get_owned_deployment(service: DeploymentService, deployment_id: str, user_data: Dict) -> DeploymentResponse:
    deployment = service.get_deployment_by_id(deployment_id)
    if deployment.user_id != user_data["id"]:
        raise HTTPException(status_code=404, detail="Deployment not found")
    return deployment


def _stage_upload(upload: UploadFile, kind: str, staging_dir: Path, index: int) -> StagedAsset:
    original = Path(upload.filename or "").name
    path = staging_dir / f"{kind}-{index}{Path(original).suffix.lower()}"
    with path.open("wb") as f:
        shutil.copyfileobj(upload.file, f)
    return StagedAsset(kind=kind, original_filename=original, path=path)


@router.post("", response_model=DeployResult)
def deploy_template(
    template_id: str = Form(...),
    repo_name: str = Form(...),
    config_data: Optional[str] = Form(None),
    user_image: Optional[UploadFile] = File(None),
    project_images: Optional[List[UploadFile]] = File(None),
    user_data: Dict = Depends(get_current_user_id),
    identity: GitHubIdentity = Depends(get_github_identity),
    template_service: TemplateService = Depends(get_template_service),
    deployment_service: DeploymentService = Depends(get_pipeline_deployment_service),
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
):
    """
    Deploy a template to the caller's GitHub Pages.

    Runs the whole pipeline before responding; poll GET /deployments/{id}/logs
    from another request to follow progress.
    """
    try:
        deployment_data = DeploymentCreate(template_id=template_id, repo_name=repo_name)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid repository name")
    try:
        payload = parse_config_payload(config_data)
    except ConfigPayloadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    project_images = [f for f in (project_images or []) if f.filename]
    if len(project_images) > MAX_PROJECT_IMAGES:
        raise HTTPException(status_code=400, detail=f"At most {MAX_PROJECT_IMAGES} project images are allowed")

    template = template_service.get_template_by_id(deployment_data.template_id)

    if deployment_service.has_active_deployment(user_data["id"], deployment_data.repo_name):
        raise HTTPException(status_code=409, detail=f"A deployment of {deployment_data.repo_name} is already in progress")

    deployment = deployment_service.create_deployment(deployment_data, user_data["id"])

    with tempfile.TemporaryDirectory(prefix="deploy-uploads-") as staging:
        staging_dir = Path(staging)
        assets = []
        if user_image is not None and user_image.filename:
            assets.append(_stage_upload(user_image, USER_IMAGE, staging_dir, 1))
        for index, upload in enumerate(project_images, start=1):
            assets.append(_stage_upload(upload, PROJECT_IMAGE, staging_dir, index))

        outcome = orchestrator.run(deployment, template, identity, payload, assets)

    if outcome.success:
        return DeployResult(
            success=True,
            deployment_id=outcome.deployment_id,
            deployed_url=outcome.deployed_url,
            repo_url=outcome.repo_url,
        )
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": outcome.message, "deployment_id": outcome.deployment_id},
    )


@router.get("", response_model=List[DeploymentResponse])
async def list_deployments(
    user_data: Dict = Depends(get_current_user_id),
    service: DeploymentService = Depends(get_deployment_service)
):
    """The caller's deployments, newest first"""
    return service.list_deployments_by_user(user_data["id"])


@router.get("/history", response_model=List[DeploymentResponse])
async def deployment_history(
    user_data: Dict = Depends(get_current_user_id),
    service: DeploymentService = Depends(get_deployment_service)
):
    return service.list_deployments_by_user(user_data["id"])


@router.get("/{deployment_id}", response_model=DeploymentResponse)
async def get_deployment(
    deployment_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: DeploymentService = Depends(get_deployment_service)
):
    """Get deployment by ID (owner only)"""
    return _get_owned_deployment(service, deployment_id, user_data)


@router.get("/{deployment_id}/logs", response_model=DeploymentLogsResponse)
async def get_deployment_logs(
    deployment_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: DeploymentService = Depends(get_deployment_service)
):
    """
    Poll for deployment logs.
    Returns current logs and deployment status.
    """
    deployment = _get_owned_deployment(service, deployment_id, user_data)
    return DeploymentLogsResponse(
        deployment_id=deployment.id,
        logs=deployment.logs or [],
        status=deployment.status,
        has_more=not deployment.status.is_terminal
    )


@router.post("/{deployment_id}/cancel", response_model=DeploymentResponse)
async def cancel_deployment(
    deployment_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: DeploymentService = Depends(get_deployment_service),
    pipeline_service: DeploymentService = Depends(get_pipeline_deployment_service)
):
    """
    Cancel an in-progress deployment. Kills the running git/npm process; the
    pipeline then records FAILED itself. An attempt that is no longer running
    in this process (e.g. after a restart) is marked FAILED here.
    """
    deployment = _get_owned_deployment(service, deployment_id, user_data)
    if deployment.status.is_terminal:
        raise HTTPException(status_code=400, detail="Deployment cannot be cancelled")
    if process_registry.is_active(deployment_id):
        process_registry.terminate(deployment_id)
        logger.info(f"Cancellation requested for deployment {deployment_id}")
        return service.get_deployment_by_id(deployment_id)
    return pipeline_service.update_deployment_status(
        deployment_id,
        DeploymentStatus.FAILED,
        log="Deployment cancelled",
        error_message="Deployment cancelled"
    )
