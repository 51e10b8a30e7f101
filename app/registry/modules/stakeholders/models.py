from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.registry.constants import LEVEL_MAX_LENGTH, STAKEHOLDER_LEVEL_FIELDS, STAKEHOLDER_TEXT_FIELDS
from app.registry.models import Base, JSONType

if TYPE_CHECKING:
    from app.registry.modules.provinces.models import Provincia
    from app.registry.modules.tags.models import Tag


class Stakeholder(Base):
    __tablename__ = "stakeholders"
    __table_args__ = (
        Index("idx_stakeholders_provincia_id", "provincia_id"),
        Index("idx_stakeholders_nombre", "nombre"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    provincia_id: Mapped[int] = mapped_column(ForeignKey("provincias.id", ondelete="CASCADE"), nullable=False)

    # Required
    nombre: Mapped[str] = mapped_column(Text, nullable=False)

    # Structured contact info (linkedin, organizacion_principal, email, telefono, ...)
    datos_contacto: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    # Free text
    objetivos_generales: Mapped[str | None] = mapped_column(Text, nullable=True)
    intereses_expectativas: Mapped[str | None] = mapped_column(Text, nullable=True)
    recursos: Mapped[str | None] = mapped_column(Text, nullable=True)
    expectativas_comunicacion: Mapped[str | None] = mapped_column(Text, nullable=True)
    relaciones: Mapped[str | None] = mapped_column(Text, nullable=True)
    riesgos_conflictos: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Influence/interest grid labels
    nivel_influencia: Mapped[str | None] = mapped_column(String(LEVEL_MAX_LENGTH), nullable=True)
    nivel_interes: Mapped[str | None] = mapped_column(String(LEVEL_MAX_LENGTH), nullable=True)

    # LinkedIn profile (about_me, headline, experiencia[], formacion[], otros_campos)
    datos_especificos_linkedin: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    # Uploaded personality profile, stored as-is
    personalidad: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    # Relationships
    provincia: Mapped["Provincia"] = relationship("Provincia", back_populates="stakeholders")
    tags: Mapped[list["Tag"]] = relationship(
        "Tag",
        secondary="stakeholder_tags",
        back_populates="stakeholders",
        order_by="Tag.name",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        data: dict = {
            "id": self.id,
            "provincia_id": self.provincia_id,
            "nombre": self.nombre,
            "datos_contacto": self.datos_contacto or {},
        }
        for field in STAKEHOLDER_TEXT_FIELDS + STAKEHOLDER_LEVEL_FIELDS:
            data[field] = getattr(self, field)
        data["datos_especificos_linkedin"] = self.datos_especificos_linkedin or {}
        data["personalidad"] = self.personalidad
        data["tags"] = [t.to_dict() for t in sorted(self.tags, key=lambda t: t.name.lower())]
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data
