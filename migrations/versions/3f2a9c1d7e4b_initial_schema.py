"""initial schema: user, terms, user_terms_acceptance

Revision ID: 3f2a9c1d7e4b
Revises:
Create Date: 2026-01-20 10:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f2a9c1d7e4b"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "user",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("image", sa.String(length=512), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("email_verified_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "terms",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("version", sa.String(length=32), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("effective_date", sa.DateTime(), nullable=False),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("version"),
    )
    op.create_index("ix_terms_is_current", "terms", ["is_current"])

    op.create_table(
        "user_terms_acceptance",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("terms_id", sa.String(length=36), sa.ForeignKey("terms.id"), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=False, server_default=sa.text("'unknown'")),
        sa.Column("accepted_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "terms_id", name="uq_user_terms_acceptance_user_terms"),
    )
    op.create_index(
        "ix_user_terms_acceptance_user_accepted",
        "user_terms_acceptance",
        ["user_id", "accepted_at"],
    )


def downgrade():
    op.drop_index("ix_user_terms_acceptance_user_accepted", table_name="user_terms_acceptance")
    op.drop_table("user_terms_acceptance")
    op.drop_index("ix_terms_is_current", table_name="terms")
    op.drop_table("terms")
    op.drop_table("user")
