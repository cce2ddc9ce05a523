"""Initial arena schema: users, tournaments, teams and matches"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("username", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "tournament",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("organizer_id", sa.String(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("unique_id", sa.String(), nullable=False, unique=True),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("scorer_pin_hash", sa.String(), nullable=True),
        sa.Column("ranking_criteria", sa.JSON(), nullable=True),
        sa.Column(
            "player_pool",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_table(
        "team",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "tournament_id", sa.String(), sa.ForeignKey("tournament.id"), nullable=False
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column(
            "player_names",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
    )
    op.create_index("ix_team_tournament_id", "team", ["tournament_id"])
    op.create_table(
        "match",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "tournament_id", sa.String(), sa.ForeignKey("tournament.id"), nullable=False
        ),
        sa.Column("team_a_id", sa.String(), sa.ForeignKey("team.id"), nullable=False),
        sa.Column("team_b_id", sa.String(), sa.ForeignKey("team.id"), nullable=False),
        sa.Column("target_points", sa.Integer(), nullable=False, server_default="21"),
        sa.Column("golden_point_cap", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("best_of", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("status", sa.String(), nullable=False, server_default="scheduled"),
        sa.Column("winner_id", sa.String(), nullable=True),
        sa.Column("scores", sa.JSON(), nullable=False),
        sa.Column("court", sa.Integer(), nullable=True),
        sa.Column("umpire_name", sa.String(), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "ix_match_tournament_status", "match", ["tournament_id", "status"]
    )


def downgrade() -> None:
    op.drop_index("ix_match_tournament_status", table_name="match")
    op.drop_table("match")
    op.drop_index("ix_team_tournament_id", table_name="team")
    op.drop_table("team")
    op.drop_table("tournament")
    op.drop_table("user")
