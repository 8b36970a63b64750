from supabase import Client
from app.modules.templates.schemas import TemplateResponse, SourceRepo
from typing import List
from urllib.parse import urlparse
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


def parse_source_repo(url: str) -> SourceRepo:
    """Split https://github.com/<owner>/<repo>(.git) into owner and repo name."""
    parts = [p for p in urlparse((url or "").strip()).path.split("/") if p]
    if len(parts) < 2:
        raise ValueError(f"Not a repository URL: {url}")
    name = parts[1][:-4] if parts[1].endswith(".git") else parts[1]
    return SourceRepo(owner=parts[0], name=name)


class TemplateService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_template_by_id(self, template_id: str) -> TemplateResponse:
        """Get template by ID."""
        try:
            result = self.supabase.table("templates").select("*").eq("id", template_id).maybe_single().execute()
            if not result or not result.data:
                raise HTTPException(status_code=404, detail="Template not found")
            return TemplateResponse(**result.data)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_templates(self) -> List[TemplateResponse]:
        """List catalog templates, newest first"""
        try:
            result = self.supabase.table("templates").select("*").order("created_at", desc=True).execute()
            return [TemplateResponse(**template) for template in result.data]
        except Exception as e:
            logger.error(f"Error listing templates: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))
