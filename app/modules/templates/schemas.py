from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class TemplateResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    tech_stack: Optional[str] = None  # React + Vite, React, Vite, Next.js, HTML
    source_repo_url: str
    preview_url: Optional[str] = None
    preview_image: Optional[str] = None
    features: Optional[List[str]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SourceRepo(BaseModel):
    owner: str
    name: str
