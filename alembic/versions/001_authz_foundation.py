"""
============================================================
TARJETA CRC (Class / Responsibilities / Collaborators)
============================================================
Class: 001_authz_foundation (Alembic Migration)

Responsibilities:
  - Crear el esquema del motor de autorización desde cero.
  - Tablas: nodes, folder_grants, folder_invitations, share_links.
  - Índices alineados con las queries de los repositorios Postgres.

Collaborators:
  - PostgreSQL 14+
  - infrastructure/repositories/postgres/* (usa este esquema como contrato)

Policy:
  - Migración BASELINE. Toda evolución futura debe ser aditiva (002+).
  - Convención de nombres:
      pk_<tabla> / uq_<tabla>_<col> / ix_<tabla>_<col> / ck_<tabla>_<regla>
      fk_<tabla>_<col>__<ref_tabla>
============================================================
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_authz_foundation"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    # =========================================================
    # 1) NODES (carpetas y documentos)
    # =========================================================
    op.create_table(
        "nodes",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("title", sa.Text, nullable=False, server_default=sa.text("''")),
        sa.Column("parent_id", postgresql.UUID(as_uuid=True), nullable=True),
        # Personal (owner_id) vs organización (org_id): exactamente uno.
        sa.Column("owner_id", sa.String(255), nullable=True),
        sa.Column("org_id", sa.String(255), nullable=True),
        sa.Column(
            "is_restricted", sa.Boolean, nullable=False, server_default=sa.text("false")
        ),
        sa.Column(
            "is_deleted", sa.Boolean, nullable=False, server_default=sa.text("false")
        ),
        # Root-first; el último elemento es parent_id.
        sa.Column(
            "ancestor_ids",
            postgresql.ARRAY(postgresql.UUID(as_uuid=True)),
            nullable=False,
            server_default=sa.text("'{}'::uuid[]"),
        ),
        _created_at(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_nodes"),
        sa.ForeignKeyConstraint(
            ["parent_id"],
            ["nodes.id"],
            name="fk_nodes_parent_id__nodes",
            ondelete="SET NULL",
        ),
        sa.CheckConstraint("type IN ('folder', 'doc')", name="ck_nodes_type"),
        sa.CheckConstraint(
            "(owner_id IS NULL) <> (org_id IS NULL)", name="ck_nodes_single_scope"
        ),
    )
    op.create_index("ix_nodes_parent_id", "nodes", ["parent_id"])
    op.create_index("ix_nodes_org_id", "nodes", ["org_id"])
    # "¿Está X bajo Y?" y descendientes por ancestro.
    op.execute("CREATE INDEX ix_nodes_ancestor_ids ON nodes USING GIN (ancestor_ids)")

    # =========================================================
    # 2) FOLDER GRANTS
    # =========================================================
    op.create_table(
        "folder_grants",
        sa.Column("folder_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("org_id", sa.String(255), nullable=True),
        sa.Column("granted_by", sa.String(255), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("folder_id", "user_id", name="pk_folder_grants"),
        sa.ForeignKeyConstraint(
            ["folder_id"],
            ["nodes.id"],
            name="fk_folder_grants_folder_id__nodes",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint(
            "role IN ('viewer', 'editor', 'admin')", name="ck_folder_grants_role"
        ),
    )
    op.create_index("ix_folder_grants_user_id", "folder_grants", ["user_id", "org_id"])
    op.execute(
        "CREATE INDEX ix_folder_grants_expires_at ON folder_grants (expires_at) "
        "WHERE expires_at IS NOT NULL"
    )

    # =========================================================
    # 3) FOLDER INVITATIONS
    # =========================================================
    op.create_table(
        "folder_invitations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("folder_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("token", sa.String(128), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        sa.Column("org_id", sa.String(255), nullable=True),
        sa.Column("invited_by", sa.String(255), nullable=True),
        sa.Column("message", sa.Text, nullable=True),
        _created_at(),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_folder_invitations"),
        sa.UniqueConstraint("token", name="uq_folder_invitations_token"),
        sa.ForeignKeyConstraint(
            ["folder_id"],
            ["nodes.id"],
            name="fk_folder_invitations_folder_id__nodes",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint(
            "role IN ('viewer', 'editor', 'admin')", name="ck_folder_invitations_role"
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'expired')",
            name="ck_folder_invitations_status",
        ),
    )
    # A lo sumo una pendiente por (carpeta, email).
    op.execute(
        "CREATE UNIQUE INDEX uq_folder_invitations_pending "
        "ON folder_invitations (folder_id, email) WHERE status = 'pending'"
    )
    op.create_index("ix_folder_invitations_email", "folder_invitations", ["email"])
    op.create_index(
        "ix_folder_invitations_invited_by", "folder_invitations", ["invited_by"]
    )

    # =========================================================
    # 4) SHARE LINKS
    # =========================================================
    op.create_table(
        "share_links",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("folder_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("token", sa.String(128), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("org_id", sa.String(255), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column(
            "is_active", sa.Boolean, nullable=False, server_default=sa.text("true")
        ),
        sa.Column("max_uses", sa.Integer, nullable=True),
        sa.Column("use_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_share_links"),
        sa.UniqueConstraint("token", name="uq_share_links_token"),
        sa.ForeignKeyConstraint(
            ["folder_id"],
            ["nodes.id"],
            name="fk_share_links_folder_id__nodes",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint("role IN ('viewer', 'editor')", name="ck_share_links_role"),
        sa.CheckConstraint(
            "max_uses IS NULL OR max_uses > 0", name="ck_share_links_max_uses"
        ),
        sa.CheckConstraint(
            "max_uses IS NULL OR use_count <= max_uses",
            name="ck_share_links_use_count",
        ),
    )
    op.create_index("ix_share_links_folder_id", "share_links", ["folder_id"])


def downgrade() -> None:
    op.drop_table("share_links")
    op.drop_table("folder_invitations")
    op.drop_table("folder_grants")
    op.drop_table("nodes")
