from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.registry.models import Base

if TYPE_CHECKING:
    from app.registry.modules.stakeholders.models import Stakeholder


def _stakeholder_order():
    # Same order as the stakeholder listings (case-insensitive name, then id).
    from app.registry.modules.stakeholders.models import Stakeholder

    return [func.lower(Stakeholder.nombre), Stakeholder.id]


class Provincia(Base):
    __tablename__ = "provincias"
    __table_args__ = (Index("idx_provincias_nombre", "nombre"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nombre: Mapped[str] = mapped_column(Text, nullable=False)

    # Deleting a province deletes its stakeholders (and, through them, their tag rows).
    stakeholders: Mapped[list["Stakeholder"]] = relationship(
        "Stakeholder",
        back_populates="provincia",
        cascade="all, delete-orphan",
        order_by=_stakeholder_order,
        lazy="selectin",
    )

    def to_dict(self, include_stakeholders: bool = True) -> dict:
        data: dict = {"id": self.id, "nombre": self.nombre}
        if include_stakeholders:
            data["stakeholders"] = [sh.to_dict() for sh in self.stakeholders]
        return data
