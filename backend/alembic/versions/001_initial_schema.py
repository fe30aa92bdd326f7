"""Initial schema: seats table with hold consistency constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("seat_number", sa.String(16), nullable=False),
        sa.Column("room", sa.String(16), nullable=False),
        sa.Column("position_x", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("position_y", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("holder_id", sa.String(64), nullable=True),
        sa.Column("reserved_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("room IN ('white', 'staff')", name="check_seat_room"),
        # A held seat always has both a holder and a deadline; a free one has neither
        sa.CheckConstraint(
            "(is_available AND holder_id IS NULL AND reserved_until IS NULL) OR "
            "(NOT is_available AND holder_id IS NOT NULL AND reserved_until IS NOT NULL)",
            name="check_seat_hold_consistent",
        ),
    )
    # Seat numbers are the external key: unique lookups on every reserve/release
    op.create_index("ix_seats_seat_number", "seats", ["seat_number"], unique=True)
    op.create_index("ix_seats_room", "seats", ["room"])
    # "Does this user already hold a seat?" runs on every reserve
    op.create_index("ix_seats_holder_id", "seats", ["holder_id"])
    # The expiry sweep filters held seats by deadline
    op.create_index(
        "ix_seats_held_reserved_until",
        "seats",
        ["reserved_until"],
        postgresql_where=sa.text("NOT is_available"),
    )


def downgrade() -> None:
    op.drop_index("ix_seats_held_reserved_until", table_name="seats")
    op.drop_index("ix_seats_holder_id", table_name="seats")
    op.drop_index("ix_seats_room", table_name="seats")
    op.drop_index("ix_seats_seat_number", table_name="seats")
    op.drop_table("seats")
