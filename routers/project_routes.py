from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from middleware.rate_limit import WRITE_RATE_LIMIT, limiter
from schemas.project import ProjectCreate, ProjectCreated, ProjectDetail, ProjectList, UpvoteResult
from services.auth import Identity, get_current_identity
from services.project_service import get_project, list_projects, submit_project, toggle_upvote

router = APIRouter(tags=["projects"])


@router.get("", response_model=ProjectList)
def get_projects(
    category: Optional[str] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    sort: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    db: Session = Depends(get_db),
):
    # limit/offset are clamped, not rejected
    projects = list_projects(
        db,
        category=category,
        status=status_filter,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    return {"projects": projects, "count": len(projects)}


@router.get("/{project_id}", response_model=ProjectDetail)
def get_project_detail(project_id: int, db: Session = Depends(get_db)):
    return {"project": get_project(db, project_id)}


@router.post("", response_model=ProjectCreated, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_RATE_LIMIT)
def create_project(
    request: Request,
    body: ProjectCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    project = submit_project(
        db,
        identity.handle,
        name=body.name,
        tagline=body.tagline,
        description=body.description,
        website_url=body.website_url,
        demo_url=body.demo_url,
        github_url=body.github_url,
        logo_url=body.logo_url,
        twitter_handle=body.twitter_handle,
        category=body.category,
        scheduled_for=body.scheduled_for,
    )
    message = "Product scheduled successfully" if project.scheduled_for else "Product submitted successfully"
    return {"project": project, "message": message}


@router.post("/{project_id}/upvote", response_model=UpvoteResult)
@limiter.limit(WRITE_RATE_LIMIT)
def upvote_project(
    request: Request,
    project_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return toggle_upvote(db, identity.handle, project_id)
