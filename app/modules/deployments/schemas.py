import re
from enum import Enum
from pydantic import BaseModel, field_validator
from typing import Optional, List
from datetime import datetime


REPO_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,100}$")


class DeploymentStatus(str, Enum):
    INIT = "INIT"
    FORKING = "FORKING"
    CLONING = "CLONING"
    CONFIGURING = "CONFIGURING"
    BUILDING = "BUILDING"
    DEPLOYING = "DEPLOYING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentStatus.SUCCESS, DeploymentStatus.FAILED)

    def can_transition(self, target: "DeploymentStatus") -> bool:
        """Statuses only move forward; FAILED is reachable from any non-terminal state."""
        if self.is_terminal:
            return False
        if target == DeploymentStatus.FAILED:
            return True
        # Same status again only appends a log line
        return _PROGRESS.index(target) >= _PROGRESS.index(self)


_PROGRESS = [
    DeploymentStatus.INIT,
    DeploymentStatus.FORKING,
    DeploymentStatus.CLONING,
    DeploymentStatus.CONFIGURING,
    DeploymentStatus.BUILDING,
    DeploymentStatus.DEPLOYING,
    DeploymentStatus.SUCCESS,
]

ACTIVE_STATUSES = [s.value for s in _PROGRESS if not s.is_terminal]


def validate_repo_name(value: str) -> str:
    value = (value or "").strip()
    if not REPO_NAME_PATTERN.match(value) or value in (".", "..") or value.endswith(".git"):
        raise ValueError("Repository name may only contain letters, digits, '.', '-' and '_'")
    return value


class DeploymentCreate(BaseModel):
    template_id: str
    repo_name: str

    @field_validator("repo_name")
    @classmethod
    def check_repo_name(cls, v: str) -> str:
        return validate_repo_name(v)


class DeploymentResponse(BaseModel):
    id: str
    user_id: str
    template_id: str
    repo_name: str
    status: DeploymentStatus
    logs: List[str] = []
    user_repo_url: Optional[str] = None
    deployed_url: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeploymentLogsResponse(BaseModel):
    deployment_id: str
    logs: List[str]
    status: DeploymentStatus
    has_more: bool = False


class DeployResult(BaseModel):
    success: bool
    deployment_id: str
    deployed_url: Optional[str] = None
    repo_url: Optional[str] = None
    message: Optional[str] = None
