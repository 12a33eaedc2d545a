from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func, true as sa_true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (
        UniqueConstraint("name", "submitted_by_twitter", name="uq_projects_name_submitter"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    tagline: Mapped[str] = mapped_column(String(280), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    website_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    demo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    github_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    twitter_handle: Mapped[str | None] = mapped_column(String(32), nullable=True)

    category: Mapped[str] = mapped_column(String(32), default="other", nullable=False, index=True)
    submitted_by_twitter: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    upvotes: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=True, server_default=sa_true(), nullable=False)

    # launch date for upcoming products; NULL = live now
    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    upvote_rows = relationship(
        "ProjectUpvote",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ProjectUpvote(Base):
    __tablename__ = "project_upvotes"
    __table_args__ = (
        UniqueConstraint("project_id", "twitter_handle", name="uq_project_upvotes_project_handle"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), index=True)
    twitter_handle: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    project = relationship("Project", back_populates="upvote_rows")
