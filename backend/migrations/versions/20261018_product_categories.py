"""Product categories

Revision ID: 20261018_categories
Revises: 20261018_initial
Create Date: 2026-10-18

Adds a per-company categories table and an optional products.category_id.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_categories"
down_revision = "20261018_initial"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.UniqueConstraint("company_id", "name", name="uq_categories_company_name"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_categories_company_id", "categories", ["company_id"])

    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.add_column(sa.Column("category_id", sa.Integer(), nullable=True))
        batch_op.create_index("ix_products_category_id", ["category_id"])
        batch_op.create_foreign_key("fk_products_category_id", "categories", ["category_id"], ["id"])


def downgrade():
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.drop_constraint("fk_products_category_id", type_="foreignkey")
        batch_op.drop_index("ix_products_category_id")
        batch_op.drop_column("category_id")

    op.drop_index("ix_categories_company_id", table_name="categories")
    op.drop_table("categories")
