from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _created_at():
    return sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now())


def _updated_at():
    return sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now())


def upgrade():
    op.create_table(
        "app_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(200), nullable=False),
        sa.Column("name", sa.String(160), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="customer"),
        _created_at(),
    )
    op.create_index("ix_app_users_email", "app_users", ["email"], unique=True)

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("action", sa.String(80), nullable=False),
        sa.Column("entity_type", sa.String(80), nullable=False),
        sa.Column("entity_id", sa.String(80), nullable=False),
        sa.Column("before_json", sa.Text(), nullable=True),
        sa.Column("after_json", sa.Text(), nullable=True),
        _created_at(),
    )

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False, index=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("site_address", sa.String(255), nullable=True),
        sa.Column("status", sa.String(40), nullable=False, server_default="ONBOARDING"),
        sa.Column("rooms_count", sa.Integer(), nullable=True),
        sa.Column("building_type", sa.String(60), nullable=True),
        _created_at(),
        _updated_at(),
    )

    op.create_table(
        "workflow_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("event_type", sa.String(80), nullable=False, index=True),
        sa.Column("payload_json", sa.Text(), nullable=True),
        _created_at(),
    )

    op.create_table(
        "project_locks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("lock_key", sa.String(80), nullable=False),
        sa.Column("owner", sa.String(120), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("project_id", "lock_key", name="uq_project_locks_project_key"),
    )

    op.create_table(
        "project_onboardings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("project_status", sa.String(60), nullable=True),
        sa.Column("construction_stage", sa.String(60), nullable=True),
        sa.Column("needs_inspection", sa.Boolean(), nullable=True),
        sa.Column("selected_features_json", sa.Text(), nullable=True),
        sa.Column("stair_steps", sa.Integer(), nullable=True),
        _created_at(),
    )

    op.create_table(
        "quotes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("tier", sa.String(20), nullable=False, server_default="STANDARD"),
        sa.Column("is_selected", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("total", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
    )

    op.create_table(
        "quote_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("quote_id", sa.Integer(), sa.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_price", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "payment_plans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("type", sa.String(30), nullable=False),
        _created_at(),
        _updated_at(),
    )

    op.create_table(
        "project_milestones",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("plan_type", sa.String(30), nullable=False),
        sa.Column("plan_source", sa.String(20), nullable=False, server_default="fallback"),
        sa.Column("index", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("percentage", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("items_json", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("project_id", "index", name="uq_project_milestones_project_index"),
    )

    op.create_table(
        "milestone_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column(
            "milestone_id",
            sa.Integer(),
            sa.ForeignKey("project_milestones.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column("reference", sa.String(120), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="initialized"),
        sa.Column("authorization_url", sa.String(500), nullable=True),
        sa.Column("gateway_status", sa.String(40), nullable=True),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_milestone_payments_reference", "milestone_payments", ["reference"], unique=True)

    op.create_table(
        "settlement_effects",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column(
            "milestone_id",
            sa.Integer(),
            sa.ForeignKey("project_milestones.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("effect_type", sa.String(40), nullable=False),
        sa.Column("trigger", sa.String(40), nullable=False, server_default="PaymentVerified"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("result_json", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("milestone_id", "effect_type", name="uq_settlement_effects_milestone_effect"),
    )
    op.create_index("ix_settlement_effects_status", "settlement_effects", ["status"])

    op.create_table(
        "device_shipments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("milestone_id", sa.Integer(), sa.ForeignKey("project_milestones.id", ondelete="SET NULL"), nullable=True),
        sa.Column("items_json", sa.Text(), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="PREPARING"),
        sa.Column("location_note", sa.Text(), nullable=True),
        sa.Column("estimated_from", sa.DateTime(), nullable=True),
        sa.Column("estimated_to", sa.DateTime(), nullable=True),
        _created_at(),
        _updated_at(),
    )

    op.create_table(
        "trips",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column(
            "milestone_id",
            sa.Integer(),
            sa.ForeignKey("project_milestones.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column("technician_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="SCHEDULED"),
        sa.Column("scheduled_for", sa.DateTime(), nullable=False),
        sa.Column("check_in_at", sa.DateTime(), nullable=True),
        sa.Column("check_out_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
    )

    op.create_table(
        "trip_tasks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("trip_id", sa.Integer(), sa.ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("label", sa.String(200), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("is_done", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.UniqueConstraint("trip_id", "sequence", name="uq_trip_tasks_trip_sequence"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True),
        sa.Column("dedupe_key", sa.String(120), nullable=True, unique=True),
        sa.Column("type", sa.String(60), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("read_at", sa.DateTime(), nullable=True),
        _created_at(),
    )


def downgrade():
    for name in (
        "notifications",
        "trip_tasks",
        "trips",
        "device_shipments",
        "settlement_effects",
        "milestone_payments",
        "project_milestones",
        "payment_plans",
        "quote_items",
        "quotes",
        "project_onboardings",
        "project_locks",
        "workflow_events",
        "projects",
        "audit_events",
        "app_users",
    ):
        op.drop_table(name)
