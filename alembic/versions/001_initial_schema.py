"""Initial schema — credentials, roles, tier profiles, documents, audit log.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False
    )


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)


def _owner(nullable: bool = False, unique: bool = False) -> sa.Column:
    """user_id column owned by auth_users; removed with the login."""
    return sa.Column(
        "user_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("auth_users.id", ondelete="CASCADE"),
        nullable=nullable,
        unique=unique,
        index=True,
    )


def upgrade() -> None:
    # ── Standalone tables (no FKs) ─────────────────────────────────────

    op.create_table(
        "auth_users",
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("password_hash", sa.String(100), nullable=False, comment="bcrypt"),
        _id(),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )

    # Append-only; deliberately no FK so entries outlive deleted principals
    op.create_table(
        "admin_audit_logs",
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("action", sa.String(100), nullable=False, index=True),
        sa.Column("target_type", sa.String(50), comment="user, partner, session"),
        sa.Column("target_id", postgresql.UUID(as_uuid=True)),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text())),
        _id(),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Tables owned by auth_users ─────────────────────────────────────

    op.create_table(
        "user_roles",
        _owner(),
        sa.Column("role", sa.String(30), nullable=False),
        _id(),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )

    op.create_table(
        "partners",
        _owner(unique=True),
        sa.Column("partner_code", sa.String(20), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("logo_url", sa.String(500)),
        sa.Column("address", sa.String(500)),
        sa.Column("is_active", sa.Boolean()),
        _id(),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "doctors",
        _owner(unique=True),
        sa.Column(
            "partner_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("partners.id", ondelete="SET NULL")
        ),
        sa.Column("global_id", sa.String(20), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("specialty", sa.String(200)),
        sa.Column("hospital", sa.String(200)),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(30)),
        sa.Column("is_active", sa.Boolean()),
        _id(),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "profiles",
        _owner(nullable=True),
        sa.Column("carebag_id", sa.String(20), unique=True, index=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(30)),
        sa.Column("relation", sa.String(50)),
        _id(),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "documents",
        _owner(),
        sa.Column(
            "profile_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            index=True,
        ),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("storage_path", sa.String(500), nullable=False),
        sa.Column("document_type", sa.String(50)),
        _id(),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_table("documents")
    op.drop_table("profiles")
    op.drop_table("doctors")
    op.drop_table("partners")
    op.drop_table("user_roles")
    op.drop_table("admin_audit_logs")
    op.drop_table("auth_users")
