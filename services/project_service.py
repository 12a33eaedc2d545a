# services/project_service.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import case, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.project import Project, ProjectUpvote
from services.errors import ConflictError, NotFoundError, ValidationError
from services.tier import require_within_limit
from utils.common_helpers import clamp_int, parse_iso_datetime, sanitize_text

logger = logging.getLogger(__name__)

VALID_CATEGORIES = (
    "defi",
    "agents",
    "infrastructure",
    "consumer",
    "gaming",
    "social",
    "tools",
    "other",
)

SORTS = ("newest", "launch_date", "upvotes", "trending")

DEFAULT_LIMIT = 50
MAX_LIMIT = 100
MAX_OFFSET = 10_000


# ---------- Listing ----------

def list_projects(
    db: Session,
    *,
    category: Optional[str] = None,
    status: Optional[str] = None,
    sort: Optional[str] = None,
    limit: Any = None,
    offset: Any = None,
    now: Optional[datetime] = None,
) -> List[Project]:
    """Approved projects.

    status=upcoming lists projects scheduled in the future; by default only
    live projects (unscheduled or already launched) are returned.
    """
    now = now or datetime.now(timezone.utc)
    q = db.query(Project).filter(Project.is_approved.is_(True))

    if status == "upcoming":
        q = q.filter(Project.scheduled_for.isnot(None), Project.scheduled_for > now)
    elif not status:
        q = q.filter(or_(Project.scheduled_for.is_(None), Project.scheduled_for <= now))

    if category and category != "all":
        q = q.filter(Project.category == category)

    if sort == "launch_date":
        q = q.order_by(Project.scheduled_for.asc(), Project.id.asc())
    elif sort == "upvotes":
        q = q.order_by(Project.upvotes.desc(), Project.id.desc())
    elif sort == "trending":
        q = q.order_by(Project.upvotes.desc(), Project.created_at.desc(), Project.id.desc())
    else:
        q = q.order_by(Project.created_at.desc(), Project.id.desc())

    limit_n = clamp_int(limit, 1, MAX_LIMIT, DEFAULT_LIMIT)
    offset_n = clamp_int(offset, 0, MAX_OFFSET, 0)
    return q.offset(offset_n).limit(limit_n).all()


def get_project(db: Session, project_id: int) -> Project:
    project = db.get(Project, project_id)
    if not project or not project.is_approved:
        raise NotFoundError("Project not found")
    return project


# ---------- Submission ----------

def submit_project(
    db: Session,
    handle: str,
    *,
    name: Any,
    tagline: Any,
    description: Any = None,
    website_url: Optional[str] = None,
    demo_url: Optional[str] = None,
    github_url: Optional[str] = None,
    logo_url: Optional[str] = None,
    twitter_handle: Optional[str] = None,
    category: Optional[str] = None,
    scheduled_for: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Project:
    now = now or datetime.now(timezone.utc)
    require_within_limit(db, handle, "project_submissions", now=now)

    clean_name = sanitize_text(name)
    clean_tagline = sanitize_text(tagline)
    if not clean_name or not clean_tagline:
        raise ValidationError("name and tagline are required")

    category = category or "other"
    if category not in VALID_CATEGORIES:
        raise ValidationError(f"Invalid category. Must be one of: {', '.join(VALID_CATEGORIES)}")

    launch_at = None
    if scheduled_for:
        launch_at = parse_iso_datetime(scheduled_for)
        if launch_at is None:
            raise ValidationError("scheduled_for must be a valid ISO timestamp")
        if launch_at <= now:
            raise ValidationError("scheduled_for must be in the future")

    exists = (
        db.query(Project.id)
        .filter(Project.name == clean_name, Project.submitted_by_twitter == handle)
        .first()
    )
    if exists:
        raise ConflictError("You have already submitted this project")

    project = Project(
        name=clean_name,
        tagline=clean_tagline,
        description=sanitize_text(description),
        website_url=website_url or None,
        demo_url=demo_url or None,
        github_url=github_url or None,
        logo_url=logo_url or None,
        twitter_handle=(twitter_handle or "").lstrip("@") or None,
        category=category,
        submitted_by_twitter=handle,
        upvotes=0,
        is_approved=True,
        scheduled_for=launch_at,
        created_at=now,
    )
    db.add(project)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("You have already submitted this project") from None
    db.refresh(project)

    logger.info("project_submitted id=%s handle=%s scheduled=%s", project.id, handle, launch_at is not None)
    return project


# ---------- Upvotes ----------

def toggle_upvote(
    db: Session,
    handle: str,
    project_id: int,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Add the caller's upvote, or remove it if already present.

    Only adding counts against the daily upvote allowance. The counter is
    updated in SQL so concurrent toggles don't lose increments.
    """
    now = now or datetime.now(timezone.utc)
    project = db.get(Project, project_id)
    if not project:
        raise NotFoundError("Project not found")

    existing = (
        db.query(ProjectUpvote)
        .filter(ProjectUpvote.project_id == project_id, ProjectUpvote.twitter_handle == handle)
        .first()
    )

    if existing:
        db.delete(existing)
        db.query(Project).filter(Project.id == project_id).update(
            {Project.upvotes: case((Project.upvotes > 0, Project.upvotes - 1), else_=0)},
            synchronize_session=False,
        )
        db.commit()
        action = "removed"
    else:
        require_within_limit(db, handle, "upvotes", now=now)
        db.add(ProjectUpvote(project_id=project_id, twitter_handle=handle, created_at=now))
        db.query(Project).filter(Project.id == project_id).update(
            {Project.upvotes: Project.upvotes + 1},
            synchronize_session=False,
        )
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Already upvoted") from None
        action = "added"

    db.refresh(project)
    logger.info("project_upvote_%s project_id=%s handle=%s upvotes=%s", action, project_id, handle, project.upvotes)
    return {"success": True, "action": action, "upvotes": project.upvotes}
