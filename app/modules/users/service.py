from supabase import Client
from app.modules.users.schemas import UserResponse, GitHubIdentity
from fastapi import HTTPException


class UserService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _get_profile(self, user_id: str) -> dict:
        result = self.supabase.table("user_profiles")\
            .select("*")\
            .eq("id", user_id)\
            .maybe_single()\
            .execute()

        if not result or not result.data:
            raise HTTPException(status_code=404, detail="User not found")
        return result.data

    def get_user_by_id(self, user_id: str) -> UserResponse:
        """Get user profile by ID"""
        try:
            profile = dict(self._get_profile(user_id))
            profile["github_connected"] = bool(profile.get("github_username") and profile.get("github_access_token"))
            profile.pop("github_access_token", None)
            return UserResponse(**profile)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_github_identity(self, user_id: str) -> GitHubIdentity:
        """Linked GitHub account for user_id; 400 when the user has not connected one"""
        try:
            profile = self._get_profile(user_id)
            username = profile.get("github_username")
            token = profile.get("github_access_token")
            if not username or not token:
                raise HTTPException(status_code=400, detail="GitHub account not connected")
            return GitHubIdentity(user_id=user_id, username=username, encrypted_access_token=token)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
