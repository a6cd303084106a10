"""create users, businesses and business memberships

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("username", sa.String(length=50), nullable=False),
            sa.Column("hashed_password", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=100), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
            sa.UniqueConstraint("username"),
        )

    if not _table_exists(inspector, "businesses"):
        op.create_table(
            "businesses",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("owner_user_id", sa.String(length=36), nullable=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=True,
            ),
            sa.ForeignKeyConstraint(["owner_user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "business_memberships"):
        op.create_table(
            "business_memberships",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("business_id", sa.String(length=36), nullable=True),
            sa.Column("user_id", sa.String(length=36), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="owner"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=True,
            ),
            sa.CheckConstraint(
                "role IN ('owner', 'admin', 'staff')",
                name="ck_business_memberships_role",
            ),
            sa.ForeignKeyConstraint(["business_id"], ["businesses.id"]),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    inspector = sa.inspect(bind)
    if not _index_exists(inspector, "users", "ix_users_email"):
        op.create_index("ix_users_email", "users", ["email"], unique=True)
    if not _index_exists(inspector, "users", "ix_users_username"):
        op.create_index("ix_users_username", "users", ["username"], unique=True)
    if not _index_exists(inspector, "users", "ux_users_email_lower"):
        op.create_index("ux_users_email_lower", "users", [sa.text("lower(email)")], unique=True)
    if not _index_exists(inspector, "users", "ux_users_username_lower"):
        op.create_index("ux_users_username_lower", "users", [sa.text("lower(username)")], unique=True)

    if not _index_exists(inspector, "businesses", "ix_businesses_owner_user_id"):
        op.create_index("ix_businesses_owner_user_id", "businesses", ["owner_user_id"], unique=True)

    if not _index_exists(inspector, "business_memberships", "ix_business_memberships_business_id"):
        op.create_index(
            "ix_business_memberships_business_id",
            "business_memberships",
            ["business_id"],
            unique=False,
        )
    if not _index_exists(inspector, "business_memberships", "ix_business_memberships_user_id"):
        op.create_index(
            "ix_business_memberships_user_id",
            "business_memberships",
            ["user_id"],
            unique=False,
        )
    if not _index_exists(inspector, "business_memberships", "ux_business_memberships_business_user"):
        op.create_index(
            "ux_business_memberships_business_user",
            "business_memberships",
            ["business_id", "user_id"],
            unique=True,
        )
    if not _index_exists(
        inspector, "business_memberships", "ix_business_memberships_user_active_created_at"
    ):
        op.create_index(
            "ix_business_memberships_user_active_created_at",
            "business_memberships",
            ["user_id", "is_active", "created_at"],
            unique=False,
        )


def downgrade() -> None:
    op.drop_table("business_memberships")
    op.drop_table("businesses")
    op.drop_table("users")
