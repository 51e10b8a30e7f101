"""initial schema: users, provincias, stakeholders, tags, stakeholder_tags, audit_events

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "1a2b3c4d5e6f"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _json():
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("username", sa.String(length=64), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("role", sa.String(length=16), nullable=False, server_default="user"),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.UniqueConstraint("username", name="uq_users_username"),
        )

    if "provincias" not in existing_tables:
        op.create_table(
            "provincias",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("nombre", sa.Text(), nullable=False),
        )
        op.create_index("idx_provincias_nombre", "provincias", ["nombre"])

    if "stakeholders" not in existing_tables:
        op.create_table(
            "stakeholders",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column(
                "provincia_id",
                sa.Integer(),
                sa.ForeignKey("provincias.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("nombre", sa.Text(), nullable=False),
            sa.Column("datos_contacto", _json(), nullable=True),
            sa.Column("objetivos_generales", sa.Text(), nullable=True),
            sa.Column("intereses_expectativas", sa.Text(), nullable=True),
            sa.Column("recursos", sa.Text(), nullable=True),
            sa.Column("expectativas_comunicacion", sa.Text(), nullable=True),
            sa.Column("relaciones", sa.Text(), nullable=True),
            sa.Column("riesgos_conflictos", sa.Text(), nullable=True),
            sa.Column("nivel_influencia", sa.String(length=32), nullable=True),
            sa.Column("nivel_interes", sa.String(length=32), nullable=True),
            sa.Column("datos_especificos_linkedin", _json(), nullable=True),
            sa.Column("personalidad", _json(), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
        )
        op.create_index("idx_stakeholders_provincia_id", "stakeholders", ["provincia_id"])
        op.create_index("idx_stakeholders_nombre", "stakeholders", ["nombre"])

    if "tags" not in existing_tables:
        op.create_table(
            "tags",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("name", sa.String(length=64), nullable=False),
            sa.UniqueConstraint("name", name="uq_tags_name"),
        )

    if "stakeholder_tags" not in existing_tables:
        op.create_table(
            "stakeholder_tags",
            sa.Column(
                "stakeholder_id",
                sa.Integer(),
                sa.ForeignKey("stakeholders.id", ondelete="CASCADE"),
                primary_key=True,
                nullable=False,
            ),
            sa.Column(
                "tag_id",
                sa.Integer(),
                sa.ForeignKey("tags.id", ondelete="CASCADE"),
                primary_key=True,
                nullable=False,
            ),
        )

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.Column("request_id", sa.String(length=64), nullable=True),
            sa.Column(
                "actor_user_id",
                sa.Integer(),
                sa.ForeignKey("users.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("actor_username", sa.String(length=64), nullable=True),
            sa.Column("action", sa.String(length=128), nullable=False),
            sa.Column("entity_type", sa.String(length=128), nullable=True),
            sa.Column("entity_id", sa.String(length=128), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("client_ip", sa.String(length=64), nullable=True),
        )
        op.create_index("idx_audit_events_action", "audit_events", ["action"])


def downgrade() -> None:
    op.drop_index("idx_audit_events_action", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("stakeholder_tags")
    op.drop_table("tags")
    op.drop_index("idx_stakeholders_nombre", table_name="stakeholders")
    op.drop_index("idx_stakeholders_provincia_id", table_name="stakeholders")
    op.drop_table("stakeholders")
    op.drop_index("idx_provincias_nombre", table_name="provincias")
    op.drop_table("provincias")
    op.drop_table("users")
