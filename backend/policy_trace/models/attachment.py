"""
Mappings and evidence attach to either a decision or a rule.

The (target_type, target_id) pair is not a foreign key: target_id holds the
uid of a Decision or a Rule depending on target_type, and rows outlive their
target when it is deleted.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import String, Text, DateTime, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from policy_trace.database import Base


class TargetType(str, Enum):
    DECISION = "decision"
    RULE = "rule"


MAPPING_TYPES = ("service", "api", "data", "integration", "security")
EVIDENCE_KINDS = ("pr", "commit", "build", "deploy", "doc", "link")
EVIDENCE_STATUSES = ("draft", "approved")


class Mapping(Base):
    """Architecture linkage from a decision or rule to a system component."""

    __tablename__ = "mappings"

    id: Mapped[int] = mapped_column(primary_key=True)
    uid: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    target_type: Mapped[str] = mapped_column(String(20))  # "decision" | "rule"
    target_id: Mapped[str] = mapped_column(String(32))
    type: Mapped[str] = mapped_column(String(20))  # one of MAPPING_TYPES
    ref: Mapped[str] = mapped_column(String(1000))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_mappings_target", "target_type", "target_id"),
        Index("idx_mappings_type", "type"),
    )


class Evidence(Base):
    """Proof of delivery (PR, build, doc, ...) for a decision or rule."""

    __tablename__ = "evidence"

    id: Mapped[int] = mapped_column(primary_key=True)
    uid: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    target_type: Mapped[str] = mapped_column(String(20))  # "decision" | "rule"
    target_id: Mapped[str] = mapped_column(String(32))
    kind: Mapped[str] = mapped_column(String(20))  # one of EVIDENCE_KINDS
    ref: Mapped[str] = mapped_column(String(1000))
    status: Mapped[str | None] = mapped_column(String(20), nullable=True)  # "draft" | "approved"
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_evidence_target", "target_type", "target_id"),
        Index("idx_evidence_kind", "kind"),
    )
