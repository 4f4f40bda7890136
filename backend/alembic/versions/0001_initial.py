"""initial settlement schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "player",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False, server_default="player"),
        sa.Column("global_wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("global_losses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rank_points", sa.Integer(), nullable=False, server_default="1000"),
    )
    op.create_table(
        "tournament",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("creator_id", sa.String(), sa.ForeignKey("player.id"), nullable=True),
        sa.Column("tournament_type", sa.String(), nullable=False),
        sa.Column("is_ranked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("score_format", sa.String(), nullable=True),
    )
    op.create_table(
        "challenge",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tournament_id", sa.String(), sa.ForeignKey("tournament.id"), nullable=False),
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("challenger_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("challenged_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
    )
    op.create_table(
        "match",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tournament_id", sa.String(), sa.ForeignKey("tournament.id"), nullable=False),
        sa.Column("player1_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("player2_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("challenge_id", sa.String(), sa.ForeignKey("challenge.id"), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("winner_id", sa.String(), sa.ForeignKey("player.id"), nullable=True),
        sa.Column("score", sa.String(), nullable=True),
        sa.Column("is_retirement", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rankings_processed", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_match_tournament_status", "match", ["tournament_id", "status"])
    op.create_table(
        "inscription",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tournament_id", sa.String(), sa.ForeignKey("tournament.id"), nullable=False),
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("player_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("initial_position", sa.Integer(), nullable=True),
        sa.Column("current_position", sa.Integer(), nullable=False),
        sa.UniqueConstraint(
            "tournament_id",
            "event_id",
            "player_id",
            name="uq_inscription_tournament_event_player",
        ),
    )


def downgrade():
    op.drop_table("inscription")
    op.drop_index("ix_match_tournament_status", table_name="match")
    op.drop_table("match")
    op.drop_table("challenge")
    op.drop_table("tournament")
    op.drop_table("player")
