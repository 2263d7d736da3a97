"""core tables: teams, games, odds, news

Revision ID: 0001_core
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_core"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.String(length=64), nullable=False),
        sa.Column("sport", sa.String(length=20), nullable=False),
        sa.Column("league", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("abbreviation", sa.String(length=16), nullable=True),
        sa.Column("location", sa.String(length=128), nullable=True),
        sa.Column("logo_url", sa.String(length=512), nullable=True),
        sa.Column("color", sa.String(length=16), nullable=True),
        sa.Column("alternate_color", sa.String(length=16), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("sport", "external_id", name="uq_teams_sport_external_id"),
    )
    op.create_index("ix_teams_external_id", "teams", ["external_id"])
    op.create_index("ix_teams_sport", "teams", ["sport"])
    op.create_index("ix_teams_name", "teams", ["name"])

    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.String(length=128), nullable=False),
        sa.Column("sport", sa.String(length=20), nullable=False),
        sa.Column("league", sa.String(length=20), nullable=False),
        sa.Column("home_team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("away_team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("home_score", sa.Integer(), nullable=True),
        sa.Column("away_score", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="scheduled"),
        sa.Column("status_detail", sa.String(length=128), nullable=True),
        sa.Column("period", sa.Integer(), nullable=True),
        sa.Column("clock", sa.String(length=64), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("venue", sa.String(length=200), nullable=True),
        sa.Column("broadcast", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("status IN ('scheduled', 'live', 'final')", name="ck_games_status"),
    )
    op.create_index("ix_games_external_id", "games", ["external_id"], unique=True)
    op.create_index("ix_games_sport", "games", ["sport"])
    op.create_index("ix_games_status", "games", ["status"])
    op.create_index("ix_games_start_time", "games", ["start_time"])
    op.create_index("ix_games_home_team_id", "games", ["home_team_id"])
    op.create_index("ix_games_away_team_id", "games", ["away_team_id"])
    op.create_index("ix_games_sport_status", "games", ["sport", "status"])
    op.create_index("ix_games_sport_start", "games", ["sport", "start_time"])

    op.create_table(
        "odds",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sportsbook", sa.String(length=64), nullable=False),
        sa.Column("market_type", sa.String(length=16), nullable=False),
        sa.Column("home_price", sa.Float(), nullable=True),
        sa.Column("away_price", sa.Float(), nullable=True),
        sa.Column("home_spread", sa.Float(), nullable=True),
        sa.Column("away_spread", sa.Float(), nullable=True),
        sa.Column("total_over", sa.Float(), nullable=True),
        sa.Column("total_under", sa.Float(), nullable=True),
        sa.Column("over_price", sa.Float(), nullable=True),
        sa.Column("under_price", sa.Float(), nullable=True),
        sa.Column("last_update", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("game_id", "sportsbook", "market_type", name="uq_odds_game_book_market"),
    )
    op.create_index("ix_odds_game_id", "odds", ["game_id"])
    op.create_index("ix_odds_sportsbook", "odds", ["sportsbook"])
    op.create_index("ix_odds_market_type", "odds", ["market_type"])

    op.create_table(
        "news",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.String(length=64), nullable=False),
        sa.Column("sport", sa.String(length=20), nullable=False),
        sa.Column("headline", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("story_url", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_news_external_id", "news", ["external_id"], unique=True)
    op.create_index("ix_news_sport", "news", ["sport"])
    op.create_index("ix_news_published_at", "news", ["published_at"])
    op.create_index("ix_news_sport_published", "news", ["sport", "published_at"])


def downgrade() -> None:
    op.drop_table("news")
    op.drop_table("odds")
    op.drop_table("games")
    op.drop_table("teams")
