from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class UserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    github_username: Optional[str] = None
    github_connected: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GitHubIdentity(BaseModel):
    """A user's linked GitHub account; access_token stays encrypted until the deploy needs it."""
    user_id: str
    username: str
    encrypted_access_token: str
