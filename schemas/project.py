from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ProjectCreate(BaseModel):
    name: Optional[str] = None
    tagline: Optional[str] = None
    description: Optional[str] = None
    website_url: Optional[str] = None
    demo_url: Optional[str] = None
    github_url: Optional[str] = None
    logo_url: Optional[str] = None
    twitter_handle: Optional[str] = None
    category: Optional[str] = None
    scheduled_for: Optional[str] = None


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    tagline: str
    description: str = ""
    website_url: Optional[str] = None
    demo_url: Optional[str] = None
    github_url: Optional[str] = None
    logo_url: Optional[str] = None
    twitter_handle: Optional[str] = None
    category: str
    submitted_by_twitter: str
    upvotes: int
    scheduled_for: Optional[datetime] = None
    created_at: datetime


class ProjectList(BaseModel):
    projects: List[ProjectOut]
    count: int


class ProjectDetail(BaseModel):
    project: ProjectOut


class ProjectCreated(BaseModel):
    success: bool = True
    project: ProjectOut
    message: str


class UpvoteResult(BaseModel):
    success: bool = True
    action: str
    upvotes: int


class HandleCheck(BaseModel):
    handle: Optional[str] = None
