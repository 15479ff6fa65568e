"""Initial schema for stage budgets, monthly values and progress events.

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    stage_kind = sa.Enum("service", "labor", "material", "fee", name="stage_kind")
    monthly_value_type = sa.Enum("planned", "actual", name="monthly_value_type")
    progress_event_type = sa.Enum(
        "inclusion", "rectification", "reversal", name="progress_event_type"
    )

    stage_kind.create(op.get_bind(), checkfirst=True)
    monthly_value_type.create(op.get_bind(), checkfirst=True)
    progress_event_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="BRL"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_projects_id", "projects", ["id"])
    op.create_index("ix_projects_code", "projects", ["code"], unique=True)

    op.create_table(
        "construction_stages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "parent_id",
            sa.Integer(),
            sa.ForeignKey("construction_stages.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("kind", stage_kind, nullable=False, server_default="service"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("quantity", sa.Numeric(24, 4), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Numeric(24, 2), nullable=False, server_default="0"),
        sa.Column("total_value", sa.Numeric(24, 2), nullable=False, server_default="0"),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_construction_stages_id", "construction_stages", ["id"])
    op.create_index("ix_construction_stages_project_id", "construction_stages", ["project_id"])
    op.create_index("ix_construction_stages_parent_id", "construction_stages", ["parent_id"])

    op.create_table(
        "stage_monthly_values",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "stage_id",
            sa.Integer(),
            sa.ForeignKey("construction_stages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("month_key", sa.String(length=7), nullable=False),
        sa.Column("value", sa.Numeric(24, 2), nullable=False),
        sa.Column("value_type", monthly_value_type, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "stage_id", "month_key", "value_type", name="uq_stage_monthly_values_stage_month_type"
        ),
    )
    op.create_index("ix_stage_monthly_values_id", "stage_monthly_values", ["id"])
    op.create_index("ix_stage_monthly_values_project_id", "stage_monthly_values", ["project_id"])
    op.create_index("ix_stage_monthly_values_stage_id", "stage_monthly_values", ["stage_id"])
    op.create_index("ix_stage_monthly_values_month_key", "stage_monthly_values", ["month_key"])

    op.create_table(
        "progress_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "stage_id",
            sa.Integer(),
            sa.ForeignKey("construction_stages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event_type", progress_event_type, nullable=False),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("quantity", sa.Numeric(24, 4), nullable=True),
        sa.Column("unit_price", sa.Numeric(24, 2), nullable=True),
        sa.Column("amount", sa.Numeric(24, 2), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "reverses_event_id",
            sa.Integer(),
            sa.ForeignKey("progress_events.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_progress_events_id", "progress_events", ["id"])
    op.create_index("ix_progress_events_project_id", "progress_events", ["project_id"])
    op.create_index("ix_progress_events_stage_id", "progress_events", ["stage_id"])
    op.create_index("ix_progress_events_event_date", "progress_events", ["event_date"])


def downgrade() -> None:
    op.drop_index("ix_progress_events_event_date", table_name="progress_events")
    op.drop_index("ix_progress_events_stage_id", table_name="progress_events")
    op.drop_index("ix_progress_events_project_id", table_name="progress_events")
    op.drop_index("ix_progress_events_id", table_name="progress_events")
    op.drop_table("progress_events")

    op.drop_index("ix_stage_monthly_values_month_key", table_name="stage_monthly_values")
    op.drop_index("ix_stage_monthly_values_stage_id", table_name="stage_monthly_values")
    op.drop_index("ix_stage_monthly_values_project_id", table_name="stage_monthly_values")
    op.drop_index("ix_stage_monthly_values_id", table_name="stage_monthly_values")
    op.drop_table("stage_monthly_values")

    op.drop_index("ix_construction_stages_parent_id", table_name="construction_stages")
    op.drop_index("ix_construction_stages_project_id", table_name="construction_stages")
    op.drop_index("ix_construction_stages_id", table_name="construction_stages")
    op.drop_table("construction_stages")

    op.drop_index("ix_projects_code", table_name="projects")
    op.drop_index("ix_projects_id", table_name="projects")
    op.drop_table("projects")

    sa.Enum(name="progress_event_type").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="monthly_value_type").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="stage_kind").drop(op.get_bind(), checkfirst=True)
