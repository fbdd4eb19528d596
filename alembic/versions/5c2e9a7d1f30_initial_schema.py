"""Initial SkillSwap schema

Revision ID: 5c2e9a7d1f30
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "5c2e9a7d1f30"
down_revision = None
branch_labels = None
depends_on = None


def _ts(name: str, **kw) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), **kw)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("photo_url", sa.String(500), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("karma", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("highest_leaderboard_rank", sa.Integer(), nullable=True),
        sa.Column("notifications_enabled", sa.Boolean(), server_default=sa.true()),
        sa.Column("profile_visible", sa.Boolean(), server_default=sa.true()),
        _ts("created_at", server_default=sa.func.now()),
        _ts("updated_at", server_default=sa.func.now()),
        sa.CheckConstraint("karma >= 0", name="ck_users_karma_non_negative"),
    )
    op.create_index("ix_users_karma_desc", "users", ["karma"])

    op.create_table(
        "skills",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("proficiency", sa.String(20), nullable=False),
        sa.UniqueConstraint("user_id", "name", name="uq_skills_user_name"),
    )

    op.create_table(
        "skill_endorsements",
        sa.Column("skill_id", sa.Integer(), sa.ForeignKey("skills.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("endorser_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        _ts("created_at", server_default=sa.func.now()),
    )

    op.create_table(
        "user_badges",
        sa.Column("user_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("badge_id", sa.String(120), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(30), nullable=True),
        sa.Column("tier", sa.String(20), nullable=True),
        sa.Column("icon", sa.String(50), nullable=True),
        _ts("awarded_at", server_default=sa.func.now()),
    )

    op.create_table(
        "user_links",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("url", sa.String(500), nullable=False),
        sa.Column("title", sa.String(200), nullable=True),
    )

    op.create_table(
        "requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("offer_in_return", sa.Text(), nullable=True),
        sa.Column("tags", postgresql.JSONB(), nullable=True),
        sa.Column("urgency", sa.String(10), nullable=True),
        sa.Column("estimated_time", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("accepted_helper_id", sa.String(128), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _ts("created_at", server_default=sa.func.now()),
        _ts("completed_at", nullable=True),
    )
    op.create_index("ix_requests_status_created", "requests", ["status", "created_at"])
    op.create_index("ix_requests_helper", "requests", ["accepted_helper_id"])

    op.create_table(
        "responses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("request_id", sa.Integer(), sa.ForeignKey("requests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("helper_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("karma_awarded", sa.Integer(), server_default="0"),
        _ts("created_at", server_default=sa.func.now()),
        _ts("accepted_at", nullable=True),
        _ts("rejected_at", nullable=True),
        _ts("completed_at", nullable=True),
    )
    op.create_index("ix_responses_helper", "responses", ["helper_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("recipient_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), server_default=sa.false()),
        sa.Column("chat_id", sa.String(64), nullable=True),
        sa.Column("request_id", sa.Integer(), nullable=True),
        sa.Column("offerer_id", sa.String(128), nullable=True),
        _ts("created_at", server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_recipient_time", "notifications", ["recipient_id", "created_at"])

    op.create_table(
        "chats",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("request_id", sa.Integer(), nullable=False),
        sa.Column("request_title", sa.String(200), nullable=False),
        sa.Column("participants", postgresql.JSONB(), nullable=False),
        sa.Column("last_message_text", sa.Text(), nullable=True),
        sa.Column("last_message_sender_id", sa.String(128), nullable=True),
        _ts("last_message_at", nullable=True),
        _ts("created_at", server_default=sa.func.now()),
        _ts("updated_at", server_default=sa.func.now()),
    )
    op.create_index("ix_chats_request", "chats", ["request_id"])

    op.create_table(
        "chat_unread",
        sa.Column("chat_id", sa.String(64), sa.ForeignKey("chats.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.String(128), primary_key=True),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_chat_unread_user", "chat_unread", ["user_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("chat_id", sa.String(64), sa.ForeignKey("chats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sender_id", sa.String(128), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("read", sa.Boolean(), server_default=sa.false()),
        _ts("timestamp", server_default=sa.func.now()),
    )

    op.create_table(
        "testimonials",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("sender_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("receiver_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("is_approved", sa.Boolean(), server_default=sa.false()),
        _ts("created_at", server_default=sa.func.now()),
    )
    op.create_index("ix_testimonials_receiver_time", "testimonials", ["receiver_id", "created_at"])

    op.create_table(
        "karma_awards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(200), nullable=True),
        sa.Column("source_key", sa.String(200), nullable=True),
        _ts("created_at", server_default=sa.func.now()),
        sa.UniqueConstraint("source_key", name="uq_karma_awards_source_key"),
    )
    op.create_index("ix_karma_awards_user_time", "karma_awards", ["user_id", "created_at"])

    op.create_table(
        "outbox",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("kind", sa.String(30), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        _ts("delivered_at", nullable=True),
        _ts("created_at", server_default=sa.func.now()),
    )
    op.create_index("ix_outbox_pending", "outbox", ["delivered_at", "id"])


def downgrade() -> None:
    for table in (
        "outbox", "karma_awards", "testimonials", "messages", "chat_unread",
        "chats", "notifications", "responses", "requests", "user_links",
        "user_badges", "skill_endorsements", "skills", "users",
    ):
        op.drop_table(table)
