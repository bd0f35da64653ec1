"""create coupons table

Revision ID: b2d3f4a5c6e7
Revises: a1c2e3f4b5d6
Create Date: 2026-03-01 00:00:01.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "b2d3f4a5c6e7"
down_revision = "a1c2e3f4b5d6"
branch_labels = None
depends_on = None

# Applicability and counter columns keep the camelCase names used by the
# stored coupon documents.
_JSON_LIST_COLUMNS = (
    "validPlanVariants",
    "validPlanCodes",
    "validVariantDays",
    "validPlanIds",
    "validUpgradeIds",
    "applicablePlans",
)


def upgrade() -> None:
    op.create_table(
        "coupons",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("value", sa.Numeric(precision=12, scale=4), nullable=False, server_default="0"),
        sa.Column("planCode", sa.String(length=50), nullable=True),
        sa.Column("variantDays", sa.Integer(), nullable=True),
        *[
            sa.Column(name, sa.JSON(), nullable=False, server_default="[]")
            for name in _JSON_LIST_COLUMNS
        ],
        sa.Column("maxUses", sa.Integer(), nullable=False, server_default="-1"),
        sa.Column("currentUses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("validFrom", sa.DateTime(timezone=True), nullable=False),
        sa.Column("validUntil", sa.DateTime(timezone=True), nullable=False),
        sa.Column("isActive", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("createdBy", sa.String(length=64), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
        sa.CheckConstraint('"currentUses" >= 0', name="ck_coupons_current_uses_non_negative"),
        sa.CheckConstraint(
            '"maxUses" = -1 OR "maxUses" > 0', name="ck_coupons_max_uses_unlimited_or_positive"
        ),
    )
    op.create_index("ix_coupons_code", "coupons", ["code"])
    op.create_index("ix_coupons_type", "coupons", ["type"])
    op.create_index("ix_coupons_isActive", "coupons", ["isActive"])
    op.create_index("ix_coupons_validity_window", "coupons", ["isActive", "validFrom", "validUntil"])


def downgrade() -> None:
    op.drop_index("ix_coupons_validity_window", table_name="coupons")
    op.drop_index("ix_coupons_isActive", table_name="coupons")
    op.drop_index("ix_coupons_type", table_name="coupons")
    op.drop_index("ix_coupons_code", table_name="coupons")
    op.drop_table("coupons")
