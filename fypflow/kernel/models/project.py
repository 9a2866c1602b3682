"""
Project, document type and committee models.

Entities reference each other by id; there are no ORM relationships, so
every relation is loaded explicitly through the repository functions.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, Boolean, CheckConstraint, Enum as SAEnum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fypflow.kernel.models.base import Base, TimestampMixin, generate_uuid


class ProjectStatus(str, Enum):
    """Registration lifecycle of a project."""

    REGISTERED = "REGISTERED"
    APPROVED = "APPROVED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class CommitteeKind(str, Enum):
    """Committees that receive workflow notifications."""

    EVALUATION = "EVALUATION"
    FYP = "FYP"


class Project(Base, TimestampMixin):
    """A student group's final-year project."""

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[ProjectStatus] = mapped_column(
        SAEnum(ProjectStatus, native_enum=False, length=30),
        default=ProjectStatus.REGISTERED,
        nullable=False,
    )
    supervisor_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True, index=True)
    group_leader_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    # Group member user ids (JSON array of strings), leader included
    member_ids: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    deadline_batch_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("deadline_batches.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    @property
    def is_approved(self) -> bool:
        return self.status in (ProjectStatus.APPROVED, ProjectStatus.IN_PROGRESS)

    @property
    def members(self) -> List[uuid.UUID]:
        ids = [uuid.UUID(str(m)) for m in (self.member_ids or [])]
        if self.group_leader_id and self.group_leader_id not in ids:
            ids.append(self.group_leader_id)
        return ids

    def has_member(self, user_id: uuid.UUID) -> bool:
        return user_id in self.members

    def __repr__(self) -> str:
        return f"<Project {self.title} {self.status.value}>"


class DocumentType(Base, TimestampMixin):
    """A required deliverable (SRS, SDS, final report...) and its score weights."""

    __tablename__ = "document_types"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    weight_supervisor: Mapped[int] = mapped_column(Integer, default=20, nullable=False)
    weight_committee: Mapped[int] = mapped_column(Integer, default=80, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "weight_supervisor >= 0 AND weight_committee >= 0 "
            "AND weight_supervisor + weight_committee = 100",
            name="ck_document_types_weights",
        ),
    )

    def __repr__(self) -> str:
        return f"<DocumentType {self.code}>"


class CommitteeMember(Base, TimestampMixin):
    """Membership of a user in the evaluation or FYP committee."""

    __tablename__ = "committee_members"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    committee: Mapped[CommitteeKind] = mapped_column(
        SAEnum(CommitteeKind, native_enum=False, length=20),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "committee", name="uq_committee_members_user_committee"),
    )
