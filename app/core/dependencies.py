"""
Core dependencies for route protection and collaborator wiring
"""

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.config.settings import Settings, get_settings
from app.core.crypto import TokenCipher
from app.database.supabase_client import get_supabase
from app.modules.auth.service import AuthService
from app.modules.users.schemas import GitHubIdentity
from app.modules.users.service import UserService
from supabase import Client
from typing import Dict
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    token = credentials.credentials
    user_data = auth_service.get_current_user(token)
    return user_data


def get_github_identity(
    user_data: Dict = Depends(get_current_user_id),
    supabase: Client = Depends(get_supabase)
) -> GitHubIdentity:
    """The caller's linked GitHub account; 400 if none is linked"""
    return UserService(supabase).get_github_identity(user_data["id"])


def get_token_cipher(settings: Settings = Depends(get_settings)) -> TokenCipher:
    try:
        return TokenCipher(settings.token_encryption_key)
    except ValueError as e:
        logger.error(f"Token cipher unavailable: {e}")
        raise HTTPException(status_code=500, detail="Token encryption is not configured")
