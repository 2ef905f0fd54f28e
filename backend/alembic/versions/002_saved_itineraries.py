"""Saved itineraries: per-user bookmarks of generated itineraries

Revision ID: 002
Revises: 001
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "saved_itineraries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column(
            "source_llm_interaction_id", sa.Integer(), sa.ForeignKey("llm_interactions.id"), nullable=True
        ),
        sa.Column(
            "primary_city_id", sa.Integer(), sa.ForeignKey("cities.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("tags", sa.Text(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_saved_itineraries_user_id", "saved_itineraries", ["user_id"])
    op.create_index(
        "ix_saved_itineraries_source_llm_interaction_id", "saved_itineraries", ["source_llm_interaction_id"]
    )


def downgrade() -> None:
    op.drop_table("saved_itineraries")
