from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.registry.constants import TAG_NAME_MAX_LENGTH
from app.registry.models import Base

if TYPE_CHECKING:
    from app.registry.modules.stakeholders.models import Stakeholder


class StakeholderTag(Base):
    __tablename__ = "stakeholder_tags"
    stakeholder_id: Mapped[int] = mapped_column(ForeignKey("stakeholders.id", ondelete="CASCADE"), primary_key=True)
    tag_id: Mapped[int] = mapped_column(ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(TAG_NAME_MAX_LENGTH), nullable=False, unique=True)

    stakeholders: Mapped[list["Stakeholder"]] = relationship(
        "Stakeholder",
        secondary="stakeholder_tags",
        back_populates="tags",
        lazy="select",
    )

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}
