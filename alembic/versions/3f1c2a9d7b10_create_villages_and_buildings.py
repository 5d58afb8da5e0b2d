"""create villages and buildings

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-19 10:12:31.402118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "villages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=40), nullable=False),
        sa.Column("x", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("y", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("wood", sa.Integer(), nullable=False, server_default=sa.text("750")),
        sa.Column("clay", sa.Integer(), nullable=False, server_default=sa.text("750")),
        sa.Column("iron", sa.Integer(), nullable=False, server_default=sa.text("750")),
        sa.Column("crop", sa.Integer(), nullable=False, server_default=sa.text("750")),
        sa.Column("wood_rate", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("clay_rate", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("iron_rate", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("crop_rate", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("wood_carry", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("clay_carry", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("iron_carry", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("crop_carry", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("warehouse", sa.Integer(), nullable=False, server_default=sa.text("800")),
        sa.Column("granary", sa.Integer(), nullable=False, server_default=sa.text("800")),
        sa.Column("population", sa.Integer(), nullable=False, server_default=sa.text("0")),
        # SQLite can't add NOT NULL columns with CURRENT_TIMESTAMP later, so they exist from day one
        sa.Column("last_update", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.CheckConstraint(
            "wood >= 0 AND clay >= 0 AND iron >= 0 AND crop >= 0",
            name="ck_villages_stock_non_negative",
        ),
    )
    op.create_index("ix_villages_owner_id", "villages", ["owner_id"])

    op.create_table(
        "buildings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("village_id", sa.Integer(), sa.ForeignKey("villages.id"), nullable=False),
        sa.Column("type", sa.Integer(), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("slot_position", sa.Integer(), nullable=False),
        sa.Column("is_under_construction", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completes_at", sa.DateTime(), nullable=True),
        sa.Column("build_seconds", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_wood", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_clay", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_iron", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_crop", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.UniqueConstraint("village_id", "slot_position", name="uq_buildings_village_slot"),
    )
    op.create_index("ix_buildings_village_id", "buildings", ["village_id"])
    op.create_index("ix_buildings_completes_at", "buildings", ["completes_at"])

    # One builder per village
    op.create_index(
        "uq_buildings_one_active_per_village",
        "buildings",
        ["village_id"],
        unique=True,
        sqlite_where=sa.text("is_under_construction = 1"),
        postgresql_where=sa.text("is_under_construction"),
    )


def downgrade() -> None:
    op.drop_index("uq_buildings_one_active_per_village", table_name="buildings")
    op.drop_index("ix_buildings_completes_at", table_name="buildings")
    op.drop_index("ix_buildings_village_id", table_name="buildings")
    op.drop_table("buildings")
    op.drop_index("ix_villages_owner_id", table_name="villages")
    op.drop_table("villages")
