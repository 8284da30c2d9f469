"""create block, deploy and state tables

Revision ID: 20210831_01
Revises:
Create Date: 2021-08-31 19:32:31

"""
from alembic import op
import sqlalchemy as sa

from cquery.config import CONFIG as C

# revision identifiers, used by Alembic.
revision = "20210831_01"
down_revision = None
branch_labels = None
depends_on = None

schema = C["DB_SCHEMA"]


def upgrade() -> None:
    if op.get_bind().dialect.name == "postgresql":
        op.execute(f"CREATE SCHEMA IF NOT EXISTS {schema}")

    op.create_table(
        "block",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("height", sa.Integer(), nullable=False),
        sa.Column("hash", sa.String(length=64), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("era_id", sa.Integer(), nullable=False),
        sa.Column("parent_hash", sa.String(length=64), nullable=True),
        sa.Column("state_root_hash", sa.String(length=64), nullable=True),
        sa.Column("proposer", sa.String(length=68), nullable=True),
        sa.Column("protocol_version", sa.String(length=16), nullable=True),
        sa.Column("count_deploys", sa.Integer(), nullable=False),
        sa.Column("count_transfers", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("id"),
        sa.UniqueConstraint("height"),
        sa.UniqueConstraint("hash"),
        schema=schema,
    )

    op.create_table(
        "deploy",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("hash", sa.String(length=64), nullable=False),
        sa.Column("block_height", sa.Integer(), nullable=False),
        sa.Column("block_hash", sa.String(length=64), nullable=False),
        sa.Column("account", sa.String(length=68), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("cost", sa.Numeric(precision=78, scale=0), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("kind", sa.String(length=32), nullable=True),
        sa.Column("is_transfer", sa.Boolean(), nullable=False),
        sa.Column("payment_amount", sa.Numeric(precision=78, scale=0), nullable=True),
        sa.Column("transfer_amount", sa.Numeric(precision=78, scale=0), nullable=True),
        sa.Column("transfer_target", sa.String(length=80), nullable=True),
        sa.Column("contract_hash", sa.String(length=64), nullable=True),
        sa.Column("contract_name", sa.String(length=128), nullable=True),
        sa.Column("entry_point", sa.String(length=128), nullable=True),
        sa.Column("chain_name", sa.String(length=32), nullable=True),
        sa.Column("gas_price", sa.Integer(), nullable=True),
        sa.Column("ttl", sa.String(length=16), nullable=True),
        sa.ForeignKeyConstraint(["block_height"], [f"{schema}.block.height"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("id"),
        sa.UniqueConstraint("hash"),
        schema=schema,
    )

    op.create_table(
        "state",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("block_number", sa.Integer(), nullable=True),
        sa.Column("block_hash", sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("id"),
        sa.UniqueConstraint("name"),
        schema=schema,
    )


def downgrade() -> None:
    op.drop_table("state", schema=schema)
    op.drop_table("deploy", schema=schema)
    op.drop_table("block", schema=schema)
