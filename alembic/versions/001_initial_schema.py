"""001 – Initial schema: employees, schedules, attendance, leave, audit, seed data.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-16 09:00:00.000000+04:00
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("employment_status", ["active", "inactive", "terminated"]),
    ("user_role", ["employee", "admin"]),
    ("attendance_status", ["present", "late"]),
    (
        "exception_type",
        [
            "late_arrival",
            "early_departure",
            "missed_clock_in",
            "missed_clock_out",
            "wrong_time",
            "short_permission_personal",
            "short_permission_official",
            "wfh",
        ],
    ),
    ("exception_status", ["pending", "approved", "rejected"]),
    ("leave_status", ["pending", "approved", "rejected"]),
    ("payment_type", ["full_pay", "half_pay", "unpaid"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code      VARCHAR(50)  NOT NULL UNIQUE,
            full_name          VARCHAR(200) NOT NULL,
            email              VARCHAR(255) NOT NULL UNIQUE,
            hire_date          DATE,
            probation_end_date DATE,
            status             employment_status DEFAULT 'active',
            role               user_role DEFAULT 'employee',
            created_at         TIMESTAMPTZ DEFAULT NOW(),
            updated_at         TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. work_schedules ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE work_schedules (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id         UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            start_time          TIME NOT NULL DEFAULT '09:00',
            end_time            TIME NOT NULL DEFAULT '17:00',
            minimum_daily_hours NUMERIC(4,2) NOT NULL DEFAULT 8.00,
            working_days        JSONB NOT NULL DEFAULT
                '["Monday","Tuesday","Wednesday","Thursday","Friday","Saturday"]'::jsonb,
            is_active           BOOLEAN DEFAULT TRUE,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE UNIQUE INDEX uq_work_schedule_active_employee "
        "ON work_schedules (employee_id) WHERE is_active"
    )

    # ── 3. attendance ─────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE attendance (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id    UUID NOT NULL REFERENCES employees(id),
            date           DATE NOT NULL,
            clock_in_time  TIMESTAMPTZ,
            clock_out_time TIMESTAMPTZ,
            total_hours    NUMERIC(5,2),
            status         attendance_status DEFAULT 'present',
            is_wfh         BOOLEAN DEFAULT FALSE,
            notes          TEXT,
            ip_address     VARCHAR(45),
            created_at     TIMESTAMPTZ DEFAULT NOW(),
            updated_at     TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_attendance_emp_date UNIQUE (employee_id, date)
        )
    """)

    # total_hours for rows written outside the application
    op.execute("""
        CREATE OR REPLACE FUNCTION calculate_total_hours() RETURNS TRIGGER AS $$
        BEGIN
            IF NEW.clock_in_time IS NOT NULL AND NEW.clock_out_time IS NOT NULL THEN
                NEW.total_hours := ROUND(
                    (EXTRACT(EPOCH FROM (NEW.clock_out_time - NEW.clock_in_time)) / 3600)::numeric,
                    2
                );
            ELSE
                NEW.total_hours := NULL;
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """)
    op.execute("""
        CREATE TRIGGER trg_attendance_total_hours
        BEFORE INSERT OR UPDATE ON attendance
        FOR EACH ROW EXECUTE FUNCTION calculate_total_hours()
    """)

    # ── 4. attendance_exceptions ──────────────────────────────────────────
    op.execute("""
        CREATE TABLE attendance_exceptions (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            attendance_id      UUID REFERENCES attendance(id),
            employee_id        UUID NOT NULL REFERENCES employees(id),
            target_date        DATE NOT NULL,
            exception_type     exception_type NOT NULL,
            reason             TEXT NOT NULL,
            document_url       TEXT,
            proposed_clock_in  TIME,
            proposed_clock_out TIME,
            status             exception_status DEFAULT 'pending',
            admin_comments     TEXT,
            reviewed_by        UUID REFERENCES employees(id),
            reviewed_at        TIMESTAMPTZ,
            created_at         TIMESTAMPTZ DEFAULT NOW(),
            updated_at         TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.create_index(
        "ix_attendance_exceptions_emp_date",
        "attendance_exceptions",
        ["employee_id", "target_date"],
    )

    # ── 5. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(100) NOT NULL UNIQUE,
            description TEXT,
            max_days    INTEGER DEFAULT 0,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 6. employee_leave_balances ────────────────────────────────────────
    op.execute("""
        CREATE TABLE employee_leave_balances (
            id                           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id                  UUID NOT NULL REFERENCES employees(id),
            leave_type_id                UUID NOT NULL REFERENCES leave_types(id),
            year                         INTEGER NOT NULL,
            allocated_days               NUMERIC(5,1) DEFAULT 0,
            used_days                    NUMERIC(5,1) DEFAULT 0,
            auto_calculated              BOOLEAN DEFAULT FALSE,
            service_months_at_allocation INTEGER DEFAULT 0,
            updated_at                   TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance UNIQUE (employee_id, leave_type_id, year)
        )
    """)

    # ── 7. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id             UUID NOT NULL REFERENCES employees(id),
            leave_type_id           UUID NOT NULL REFERENCES leave_types(id),
            start_date              DATE NOT NULL,
            end_date                DATE NOT NULL,
            total_days              NUMERIC(5,1) NOT NULL,
            reason                  TEXT,
            status                  leave_status DEFAULT 'pending',
            payment_type            payment_type DEFAULT 'full_pay',
            medical_certificate_url TEXT,
            relationship            VARCHAR(100),
            reviewed_by             UUID REFERENCES employees(id),
            reviewed_at             TIMESTAMPTZ,
            reviewer_remarks        TEXT,
            created_at              TIMESTAMPTZ DEFAULT NOW(),
            updated_at              TIMESTAMPTZ DEFAULT NOW(),
            CHECK (end_date >= start_date)
        )
    """)
    op.create_index(
        "ix_leave_requests_emp_status",
        "leave_requests",
        ["employee_id", "status"],
    )

    # ── 8. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id    UUID REFERENCES employees(id),
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID,
            old_values  JSONB,
            new_values  JSONB,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.create_index("ix_audit_trail_entity", "audit_trail", ["entity_type", "entity_id"])
    op.create_index("ix_audit_trail_created_at", "audit_trail", ["created_at"])

    # ── Seed data ─────────────────────────────────────────────────────────
    leave_types = sa.table(
        "leave_types",
        sa.column("name", sa.String),
        sa.column("description", sa.Text),
        sa.column("max_days", sa.Integer),
    )
    op.bulk_insert(
        leave_types,
        [
            {"name": "Annual Leave", "description": "Service-based annual leave", "max_days": 30},
            {"name": "Sick Leave", "description": "After probation; certificate beyond 3 days", "max_days": 90},
            {"name": "Maternity Leave", "description": "Full/half/unpaid by length", "max_days": 60},
            {"name": "Parental Leave", "description": "Full pay", "max_days": 5},
            {"name": "Compassionate Leave", "description": "Granted per bereavement event", "max_days": 0},
            {"name": "Study Leave", "description": "Examinations and coursework", "max_days": 10},
            {"name": "Hajj Leave", "description": "Once per employment, unpaid, 2 years' service", "max_days": 30},
        ],
    )


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    tables = [
        "audit_trail",
        "leave_requests",
        "employee_leave_balances",
        "leave_types",
        "attendance_exceptions",
        "attendance",
        "work_schedules",
        "employees",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    op.execute("DROP FUNCTION IF EXISTS calculate_total_hours()")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
