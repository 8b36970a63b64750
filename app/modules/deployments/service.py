from supabase import Client
from app.modules.deployments.schemas import ACTIVE_STATUSES, DeploymentCreate, DeploymentResponse, DeploymentStatus
from typing import List, Optional
from datetime import datetime, timezone
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DeploymentService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def create_deployment(self, deployment_data: DeploymentCreate, user_id: str) -> DeploymentResponse:
        """Create a new deployment record in INIT"""
        try:
            result = self.supabase.table("deployments").insert({
                "template_id": deployment_data.template_id,
                "user_id": user_id,
                "repo_name": deployment_data.repo_name,
                "status": DeploymentStatus.INIT.value,
                "logs": ["Deployment started"],
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create deployment")

            return DeploymentResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error creating deployment: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    def get_deployment_by_id(self, deployment_id: str) -> DeploymentResponse:
        """Get deployment by ID"""
        try:
            result = self.supabase.table("deployments")\
                .select("*")\
                .eq("id", deployment_id)\
                .maybe_single()\
                .execute()

            if not result or not result.data:
                raise HTTPException(status_code=404, detail="Deployment not found")

            return DeploymentResponse(**result.data)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error getting deployment: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    def update_deployment_status(
        self,
        deployment_id: str,
        status: DeploymentStatus,
        log: Optional[str] = None,
        user_repo_url: Optional[str] = None,
        deployed_url: Optional[str] = None,
        error_message: Optional[str] = None
    ) -> DeploymentResponse:
        """
        Move a deployment to status and append log to its trail.

        Statuses only move forward (see DeploymentStatus.can_transition); an
        illegal move is rejected with 409. deployed_url is only accepted
        together with SUCCESS.
        """
        status = DeploymentStatus(status)
        try:
            current = self.get_deployment_by_id(deployment_id)
            if not current.status.can_transition(status):
                raise HTTPException(
                    status_code=409,
                    detail=f"Invalid status transition {current.status.value} -> {status.value}"
                )
            if deployed_url and status != DeploymentStatus.SUCCESS:
                raise HTTPException(status_code=400, detail="deployed_url can only be set on SUCCESS")

            update_data = {"status": status.value, "updated_at": _now()}

            if log:
                update_data["logs"] = list(current.logs or []) + [log]

            if user_repo_url:
                update_data["user_repo_url"] = user_repo_url

            if deployed_url:
                update_data["deployed_url"] = deployed_url

            if error_message:
                update_data["error_message"] = error_message

            if status.is_terminal:
                update_data["completed_at"] = _now()

            result = self.supabase.table("deployments")\
                .update(update_data)\
                .eq("id", deployment_id)\
                .execute()

            if result.data and len(result.data) > 0:
                return DeploymentResponse(**result.data[0])
            # Empty response can happen (e.g. PostgREST config); assume update succeeded
            return self.get_deployment_by_id(deployment_id)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error updating deployment: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    def list_deployments_by_user(self, user_id: str) -> List[DeploymentResponse]:
        """List a user's deployments, newest first"""
        try:
            result = self.supabase.table("deployments")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .execute()

            return [DeploymentResponse(**deployment) for deployment in result.data]
        except Exception as e:
            logger.error(f"Error listing deployments: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    def has_active_deployment(self, user_id: str, repo_name: str) -> bool:
        """Whether user_id already has a non-terminal deployment targeting repo_name"""
        try:
            result = self.supabase.table("deployments")\
                .select("id")\
                .eq("user_id", user_id)\
                .eq("repo_name", repo_name)\
                .in_("status", ACTIVE_STATUSES)\
                .execute()

            return bool(result.data)
        except Exception as e:
            logger.error(f"Error checking active deployments: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))
