"""index deploys by sender account and block height

Revision ID: 20220111_01
Revises: 20210831_01
Create Date: 2022-01-11 20:38:53

"""
from alembic import op

from cquery.config import CONFIG as C

# revision identifiers, used by Alembic.
revision = "20220111_01"
down_revision = "20210831_01"
branch_labels = None
depends_on = None

schema = C["DB_SCHEMA"]


def upgrade() -> None:
    op.create_index("ix_deploy_account", "deploy", ["account"], unique=False, schema=schema)
    op.create_index("ix_deploy_block_height", "deploy", ["block_height"], unique=False, schema=schema)


def downgrade() -> None:
    op.drop_index("ix_deploy_block_height", table_name="deploy", schema=schema)
    op.drop_index("ix_deploy_account", table_name="deploy", schema=schema)
