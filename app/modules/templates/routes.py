from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.templates.schemas import TemplateResponse
from app.modules.templates.service import TemplateService
from supabase import Client
from typing import List

router = APIRouter(prefix="/templates", tags=["templates"])


def get_template_service(supabase: Client = Depends(get_supabase)) -> TemplateService:
    return TemplateService(supabase)


@router.get("", response_model=List[TemplateResponse])
async def list_templates(service: TemplateService = Depends(get_template_service)):
    """List deployable templates."""
    return service.list_templates()


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(template_id: str, service: TemplateService = Depends(get_template_service)):
    """Get template by ID"""
    return service.get_template_by_id(template_id)
