"""create products, product logs and audit logs

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 09:30:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_0002"
down_revision: Union[str, None] = "20261018_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LEDGER_COLUMNS = (
    "opening_stock",
    "inward_addition",
    "deduction",
    "auto_addition",
    "auto_deduction",
    "blocked_stock",
)


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def _create_index(inspector: sa.Inspector, name: str, table: str, columns: list, unique: bool = False) -> None:
    if not _index_exists(inspector, table, name):
        op.create_index(name, table, columns, unique=unique)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "products"):
        op.create_table(
            "products",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("business_id", sa.String(length=36), nullable=True),
            sa.Column("sku", sa.String(length=100), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("category", sa.String(length=100), nullable=False),
            sa.Column("weight", sa.Numeric(12, 2), nullable=False),
            sa.Column("price", sa.Numeric(12, 2), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("mapped_variants", sa.JSON(), nullable=True),
            *(
                sa.Column(column, sa.Integer(), nullable=False, server_default="0")
                for column in LEDGER_COLUMNS
            ),
            sa.Column("created_by_user_id", sa.String(length=36), nullable=True),
            sa.Column("updated_by_user_id", sa.String(length=36), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=True,
            ),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            *(
                sa.CheckConstraint(f"{column} >= 0", name=f"ck_products_{column}_non_negative")
                for column in LEDGER_COLUMNS
            ),
            sa.ForeignKeyConstraint(["business_id"], ["businesses.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "product_logs"):
        op.create_table(
            "product_logs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("business_id", sa.String(length=36), nullable=True),
            sa.Column("product_id", sa.String(length=36), nullable=True),
            sa.Column("sku", sa.String(length=100), nullable=False),
            sa.Column("action", sa.String(length=50), nullable=False),
            sa.Column("changes", sa.JSON(), nullable=False),
            sa.Column("adjustment_type", sa.String(length=20), nullable=True),
            sa.Column("adjustment_amount", sa.Integer(), nullable=True),
            sa.Column("performed_by_user_id", sa.String(length=36), nullable=True),
            sa.Column("performed_by_email", sa.String(length=255), nullable=True),
            sa.Column("metadata_json", sa.JSON(), nullable=True),
            sa.Column("performed_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["business_id"], ["businesses.id"]),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
            sa.ForeignKeyConstraint(["performed_by_user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("business_id", sa.String(length=36), nullable=True),
            sa.Column("actor_user_id", sa.String(length=36), nullable=True),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("target_type", sa.String(length=100), nullable=False),
            sa.Column("target_id", sa.String(length=36), nullable=True),
            sa.Column("target_sku", sa.String(length=100), nullable=True),
            sa.Column("metadata_json", sa.JSON(), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=True,
            ),
            sa.ForeignKeyConstraint(["business_id"], ["businesses.id"]),
            sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    inspector = sa.inspect(bind)
    _create_index(inspector, "ix_products_business_id", "products", ["business_id"])
    _create_index(inspector, "ix_products_business_created_at", "products", ["business_id", "created_at"])
    _create_index(inspector, "ix_products_business_category", "products", ["business_id", "category"])
    _create_index(
        inspector,
        "ux_products_business_sku_lower",
        "products",
        ["business_id", sa.text("lower(sku)")],
        unique=True,
    )

    _create_index(inspector, "ix_product_logs_business_id", "product_logs", ["business_id"])
    _create_index(inspector, "ix_product_logs_product_id", "product_logs", ["product_id"])
    _create_index(inspector, "ix_product_logs_performed_by_user_id", "product_logs", ["performed_by_user_id"])
    _create_index(
        inspector,
        "ix_product_logs_product_performed_at",
        "product_logs",
        ["product_id", "performed_at"],
    )
    _create_index(
        inspector,
        "ix_product_logs_business_action_performed_at",
        "product_logs",
        ["business_id", "action", "performed_at"],
    )

    _create_index(inspector, "ix_audit_logs_business_id", "audit_logs", ["business_id"])
    _create_index(inspector, "ix_audit_logs_actor_user_id", "audit_logs", ["actor_user_id"])
    _create_index(inspector, "ix_audit_logs_target_id", "audit_logs", ["target_id"])
    _create_index(inspector, "ix_audit_logs_business_created_at", "audit_logs", ["business_id", "created_at"])
    _create_index(
        inspector,
        "ix_audit_logs_business_action_created_at",
        "audit_logs",
        ["business_id", "action", "created_at"],
    )
    _create_index(inspector, "ix_audit_logs_business_target_sku", "audit_logs", ["business_id", "target_sku"])
    _create_index(
        inspector,
        "ix_audit_logs_business_actor_created_at",
        "audit_logs",
        ["business_id", "actor_user_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("product_logs")
    op.drop_table("products")
