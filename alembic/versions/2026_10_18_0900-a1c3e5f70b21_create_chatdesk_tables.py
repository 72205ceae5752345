"""create chatdesk tables

Revision ID: a1c3e5f70b21
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a1c3e5f70b21"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _fk(name: str, target: str, ondelete: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    """Upgrade schema: business catalog, bots, sessions, reservations, workflows."""
    op.create_table(
        "businesses",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("business_type", sa.String(length=128), nullable=True),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "business_services",
        _id(),
        _fk("business_id", "businesses.id", "CASCADE"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index(
        "ix_business_services_business_order",
        "business_services",
        ["business_id", "display_order"],
    )

    op.create_table(
        "business_time_slots",
        _id(),
        _fk("business_id", "businesses.id", "CASCADE"),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("slot_duration", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(
        "ix_business_time_slots_business_day",
        "business_time_slots",
        ["business_id", "day_of_week"],
    )

    op.create_table(
        "bots",
        _id(),
        _fk("business_id", "businesses.id", "CASCADE"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("phone_number", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "bot_settings",
        _id(),
        _fk("bot_id", "bots.id", "CASCADE"),
        sa.Column("booking_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("booking_trigger_keywords", postgresql.JSONB(), nullable=True),
        sa.Column("booking_confirmation_message", sa.Text(), nullable=True),
        sa.Column("booking_cancellation_message", sa.Text(), nullable=True),
        sa.Column(
            "booking_require_gender", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "booking_require_booking_for",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
        ),
        sa.Column("workflow_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("ai_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("auto_reply_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("bot_id"),
    )

    op.create_table(
        "bot_ai_contexts",
        _id(),
        _fk("bot_id", "bots.id", "CASCADE"),
        sa.Column("business_context", sa.Text(), nullable=False, server_default=""),
        sa.Column("system_prompt", sa.Text(), nullable=True),
        sa.Column("allowed_topics", postgresql.JSONB(), nullable=True),
        sa.Column("restricted_topics", postgresql.JSONB(), nullable=True),
        sa.Column(
            "response_style",
            sa.String(length=64),
            nullable=False,
            server_default="professional",
        ),
        sa.Column(
            "max_response_length", sa.Integer(), nullable=False, server_default="500"
        ),
        *_timestamps(),
        sa.UniqueConstraint("bot_id"),
    )

    op.create_table(
        "bot_media",
        _id(),
        _fk("bot_id", "bots.id", "CASCADE"),
        sa.Column("media_type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        sa.Column("mime_type", sa.String(length=128), nullable=True),
        sa.Column("location_name", sa.String(length=255), nullable=True),
        sa.Column("location_address", sa.Text(), nullable=True),
        sa.Column("location_latitude", sa.Float(), nullable=True),
        sa.Column("location_longitude", sa.Float(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_bot_media_bot_id", "bot_media", ["bot_id"])

    op.create_table(
        "workflows",
        _id(),
        _fk("bot_id", "bots.id", "CASCADE"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "definition",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index(
        "ix_workflows_bot_published",
        "workflows",
        ["bot_id", "is_published", "is_active"],
    )

    op.create_table(
        "conversation_sessions",
        _id(),
        _fk("bot_id", "bots.id", "CASCADE"),
        sa.Column("user_key", sa.String(length=255), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("flow_kind", sa.String(length=16), nullable=False),
        sa.Column("current_step", sa.String(length=128), nullable=False),
        sa.Column(
            "collected_data",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "flow_settings",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        _fk("workflow_id", "workflows.id", "SET NULL", nullable=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("outcome", sa.String(length=16), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "uq_conversation_sessions_one_open_per_user",
        "conversation_sessions",
        ["bot_id", "user_key"],
        unique=True,
        postgresql_where=sa.text("is_completed = false"),
    )
    op.create_index(
        "ix_conversation_sessions_open_expiry",
        "conversation_sessions",
        ["is_completed", "expires_at"],
    )

    op.create_table(
        "reservations",
        _id(),
        _fk("business_id", "businesses.id", "CASCADE"),
        _fk("bot_id", "bots.id", "SET NULL", nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("customer_phone", sa.String(length=255), nullable=False),
        sa.Column("booking_for", sa.String(length=255), nullable=True),
        sa.Column("gender", sa.String(length=16), nullable=True),
        _fk("service_id", "business_services.id", "SET NULL", nullable=True),
        sa.Column("service_name", sa.String(length=255), nullable=False),
        sa.Column("service_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("booking_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "uq_reservations_active_slot",
        "reservations",
        ["business_id", "booking_date", "booking_time"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'confirmed')"),
    )
    op.create_index(
        "ix_reservations_business_date", "reservations", ["business_id", "booking_date"]
    )

    op.create_table(
        "inquiries",
        _id(),
        _fk("bot_id", "bots.id", "CASCADE"),
        _fk("workflow_id", "workflows.id", "SET NULL", nullable=True),
        sa.Column("customer_phone", sa.String(length=255), nullable=True),
        sa.Column("source", sa.String(length=32), nullable=False),
        sa.Column(
            "inquiry_data",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="new"),
        *_timestamps(),
    )
    op.create_index("ix_inquiries_bot_id", "inquiries", ["bot_id"])

    op.create_table(
        "conversation_events",
        _id(),
        sa.Column("direction", sa.String(length=16), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("bot_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_key", sa.String(length=255), nullable=False),
        sa.Column("message_type", sa.String(length=32), nullable=False, server_default="text"),
        sa.Column("message_id", sa.String(length=255), nullable=True),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_conversation_events_bot_user_created",
        "conversation_events",
        ["bot_id", "user_key", "created_at"],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("conversation_events")
    op.drop_table("inquiries")
    op.drop_index("uq_reservations_active_slot", table_name="reservations")
    op.drop_table("reservations")
    op.drop_index(
        "uq_conversation_sessions_one_open_per_user", table_name="conversation_sessions"
    )
    op.drop_table("conversation_sessions")
    op.drop_table("workflows")
    op.drop_table("bot_media")
    op.drop_table("bot_ai_contexts")
    op.drop_table("bot_settings")
    op.drop_table("bots")
    op.drop_table("business_time_slots")
    op.drop_table("business_services")
    op.drop_table("businesses")
