"""
Module: fiche_kernel.models.version
Responsibility: ORM persistence for content snapshots taken at submission.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(fiche_id, version): one snapshot per content version.
    - Rows are append-only (ORM listeners and database triggers).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, Select, String, Text, UniqueConstraint, select
from sqlalchemy.orm import Mapped, mapped_column

from fiche_kernel.db.base import Base, UTCDateTime, UUIDString

if TYPE_CHECKING:
    from fiche_kernel.domain.fiche import FicheVersionRecord


class FicheVersionModel(Base):
    """Immutable content snapshot of a fiche at one of its submissions."""

    __tablename__ = "fiche_versions"

    __table_args__ = (
        UniqueConstraint("fiche_id", "version", name="uq_fiche_versions_fiche_version"),
    )

    fiche_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("fiches.id"), nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<FicheVersion {self.fiche_id} v{self.version}>"

    @classmethod
    def for_fiche(cls, fiche_id: UUID) -> Select[tuple[FicheVersionModel]]:
        """Versions of a fiche, newest first."""
        return (
            select(cls)
            .where(cls.fiche_id == fiche_id)
            .order_by(cls.version.desc())
        )

    def to_record(self) -> FicheVersionRecord:
        from fiche_kernel.domain.fiche import FicheStatus, FicheVersionRecord

        return FicheVersionRecord(
            fiche_id=self.fiche_id,
            version=self.version,
            content=self.content,
            status=FicheStatus(self.status),
            created_at=self.created_at,
        )
