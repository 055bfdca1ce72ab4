"""ContentlyAI schema - users, conversations, messages, user_settings

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Allow-lists for platform, model, role and theme are CHECK constraints so the
values stay in step with the Python enums in contently.db.models.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

PLATFORMS = ("twitter", "linkedin", "instagram", "facebook", "tiktok", "youtube", "general")
LLM_MODELS = (
    "llama-3.1-8b-instant",
    "mixtral-8x7b-32768",
    "gemma-7b-it",
    "deepseek-r1-distill-llama-70b",
)
ROLES = ("user", "assistant", "system")
THEMES = ("light", "dark", "system")


def _in_list(column: str, values: Sequence[str]) -> str:
    return f"{column} IN ({', '.join(repr(v) for v in values)})"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # Enable pgcrypto extension for gen_random_uuid()
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # ==========================================================================
    # users table
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column(
            "id",
            sa.UUID(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("firebase_uid", sa.Text(), nullable=True),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("firebase_uid", name="uq_users_firebase_uid"),
        sa.CheckConstraint(
            "password_hash IS NOT NULL OR firebase_uid IS NOT NULL",
            name="ck_users_authenticatable",
        ),
    )

    # ==========================================================================
    # conversations table
    # ==========================================================================
    op.create_table(
        "conversations",
        sa.Column(
            "id",
            sa.UUID(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("owner_user_id", sa.UUID(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("target_platform", sa.Text(), server_default="general", nullable=False),
        sa.Column(
            "llm_model", sa.Text(), server_default="llama-3.1-8b-instant", nullable=False
        ),
        sa.Column("next_seq", sa.Integer(), server_default="1", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["owner_user_id"],
            ["users.id"],
            ondelete="CASCADE",
        ),
        sa.CheckConstraint(
            "length(title) >= 1 AND length(title) <= 200",
            name="ck_conversations_title_length",
        ),
        sa.CheckConstraint(
            _in_list("target_platform", PLATFORMS), name="ck_conversations_target_platform"
        ),
        sa.CheckConstraint(_in_list("llm_model", LLM_MODELS), name="ck_conversations_llm_model"),
        sa.CheckConstraint("next_seq >= 1", name="ck_conversations_next_seq_positive"),
    )
    op.create_index(
        "ix_conversations_owner_updated", "conversations", ["owner_user_id", "updated_at"]
    )

    # ==========================================================================
    # messages table
    # ==========================================================================
    op.create_table(
        "messages",
        sa.Column(
            "id",
            sa.UUID(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("conversation_id", sa.UUID(), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("thinking_content", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["conversation_id"],
            ["conversations.id"],
            ondelete="CASCADE",
        ),
        sa.CheckConstraint("seq >= 1", name="ck_messages_seq_positive"),
        sa.CheckConstraint(_in_list("role", ROLES), name="ck_messages_role"),
    )
    op.create_index(
        "uix_messages_conversation_seq", "messages", ["conversation_id", "seq"], unique=True
    )

    # ==========================================================================
    # user_settings table
    # ==========================================================================
    op.create_table(
        "user_settings",
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column(
            "default_llm_model",
            sa.Text(),
            server_default="llama-3.1-8b-instant",
            nullable=False,
        ),
        sa.Column("default_platform", sa.Text(), server_default="general", nullable=False),
        sa.Column("theme", sa.Text(), server_default="light", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("user_id"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            ondelete="CASCADE",
        ),
        sa.CheckConstraint(
            _in_list("default_llm_model", LLM_MODELS),
            name="ck_user_settings_default_llm_model",
        ),
        sa.CheckConstraint(
            _in_list("default_platform", PLATFORMS), name="ck_user_settings_default_platform"
        ),
        sa.CheckConstraint(_in_list("theme", THEMES), name="ck_user_settings_theme"),
    )


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign key dependencies)
    op.drop_table("user_settings")
    op.drop_index("uix_messages_conversation_seq", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_conversations_owner_updated", table_name="conversations")
    op.drop_table("conversations")
    op.drop_table("users")
