"""create customer registry and entitlement log tables

Revision ID: 8d3f1c2a9b7e
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import mysql


# revision identifiers, used by Alembic.
revision: str = "8d3f1c2a9b7e"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
_PRECISE_DATETIME = sa.DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")
_VALUE_TYPE = sa.Enum("boolean", "double", "integer", "string", name="entitlement_value_type")


def upgrade() -> None:
    op.create_table(
        "customers",
        sa.Column("customer_identifier", sa.String(length=255), primary_key=True),
        sa.Column("aws_account_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("job_role", sa.String(length=100), nullable=True),
        sa.Column("company", sa.String(length=255), nullable=True),
        sa.Column("country", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "products",
        sa.Column("product_code", sa.String(length=255), primary_key=True),
        sa.Column("product_name", sa.String(length=255), nullable=True),
    )
    op.create_table(
        "entitlement_values",
        sa.Column("value_id", _ID, primary_key=True, autoincrement=True),
        sa.Column("boolean_value", sa.Boolean(), nullable=True),
        sa.Column("double_value", sa.Float(precision=53), nullable=True),
        sa.Column("integer_value", sa.BigInteger(), nullable=True),
        sa.Column("string_value", sa.String(length=255), nullable=True),
        sa.Column("value_type", _VALUE_TYPE, nullable=False),
        sa.CheckConstraint(
            "(CASE WHEN boolean_value IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN double_value IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN integer_value IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN string_value IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_entitlement_values_one_variant",
        ),
    )
    op.create_table(
        "entitlements",
        sa.Column("entitlement_id", _ID, primary_key=True, autoincrement=True),
        sa.Column(
            "customer_identifier",
            sa.String(length=255),
            sa.ForeignKey("customers.customer_identifier", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "product_code",
            sa.String(length=255),
            sa.ForeignKey("products.product_code", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("dimension", sa.String(length=255), nullable=False),
        sa.Column("expiration_date", sa.DateTime(), nullable=False),
        sa.Column(
            "value_id",
            _ID,
            sa.ForeignKey("entitlement_values.value_id", ondelete="RESTRICT"),
            nullable=False,
            unique=True,
        ),
        sa.Column("created_at", _PRECISE_DATETIME, nullable=False),
        sa.Column("updated_at", _PRECISE_DATETIME, nullable=False),
    )
    op.create_index(
        "ix_entitlements_triple_created_at",
        "entitlements",
        ["customer_identifier", "product_code", "dimension", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_entitlements_triple_created_at", table_name="entitlements")
    op.drop_table("entitlements")
    op.drop_table("entitlement_values")
    op.drop_table("products")
    op.drop_table("customers")
    _VALUE_TYPE.drop(op.get_bind(), checkfirst=True)
