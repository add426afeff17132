"""Gamification core tables.

Creates clubs, students, xp_transactions, daily_challenges,
challenge_submissions, habit_logs, custom_habits and family_logs.

Revision ID: 001_gamification_core
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_gamification_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Clubs ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS clubs (
            id UUID PRIMARY KEY,
            name VARCHAR(255) NOT NULL,
            art_type VARCHAR(100) NOT NULL DEFAULT 'Taekwondo',
            parent_premium_enabled BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Students ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS students (
            id UUID PRIMARY KEY,
            club_id UUID NOT NULL REFERENCES clubs(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            belt VARCHAR(50) NOT NULL DEFAULT 'white',
            stripes INTEGER NOT NULL DEFAULT 0,
            total_xp INTEGER NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
            premium_status VARCHAR(20) NOT NULL DEFAULT 'none',
            parent_email VARCHAR(255),
            parent_name VARCHAR(255),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_students_club_id
        ON students(club_id)
    """)

    # --- XP Ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_transactions (
            id SERIAL PRIMARY KEY,
            student_id UUID NOT NULL REFERENCES students(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL CHECK (amount > 0),
            type VARCHAR(8) NOT NULL CHECK (type IN ('EARN', 'SPEND')),
            reason VARCHAR(255) NOT NULL,
            details JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_transactions_student_created
        ON xp_transactions(student_id, created_at)
    """)

    # --- Daily Challenge cache ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_challenges (
            id UUID PRIMARY KEY,
            date DATE NOT NULL,
            target_belt VARCHAR(100) NOT NULL,
            title VARCHAR(255) NOT NULL,
            description TEXT NOT NULL,
            xp_reward INTEGER NOT NULL DEFAULT 25,
            type VARCHAR(16) NOT NULL DEFAULT 'quiz',
            quiz_data JSONB NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_daily_challenges_date_belt UNIQUE (date, target_belt)
        )
    """)

    # --- Challenge submissions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenge_submissions (
            id UUID PRIMARY KEY,
            student_id UUID NOT NULL REFERENCES students(id) ON DELETE CASCADE,
            club_id UUID NOT NULL REFERENCES clubs(id) ON DELETE CASCADE,
            challenge_key VARCHAR(100) NOT NULL,
            daily_challenge_id UUID REFERENCES daily_challenges(id) ON DELETE SET NULL,
            mode VARCHAR(16) NOT NULL,
            status VARCHAR(20) NOT NULL,
            proof_type VARCHAR(8) NOT NULL DEFAULT 'TRUST',
            xp_awarded INTEGER NOT NULL DEFAULT 0,
            score INTEGER,
            video_url TEXT,
            answer TEXT,
            is_correct BOOLEAN,
            opponent_id UUID REFERENCES students(id) ON DELETE SET NULL,
            pvp_scores JSONB NOT NULL DEFAULT '{}',
            winner_id UUID,
            coach_notes TEXT,
            verified_by UUID,
            submitted_on DATE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            resolved_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_submissions_student_day
        ON challenge_submissions(student_id, submitted_on, mode)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_submissions_club_status
        ON challenge_submissions(club_id, status)
    """)

    # --- Home Dojo ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS habit_logs (
            id SERIAL PRIMARY KEY,
            student_id UUID NOT NULL REFERENCES students(id) ON DELETE CASCADE,
            habit_name VARCHAR(100) NOT NULL,
            xp_awarded INTEGER NOT NULL DEFAULT 0,
            log_date DATE NOT NULL,
            CONSTRAINT uq_habit_logs_student_habit_day UNIQUE (student_id, habit_name, log_date)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS custom_habits (
            id UUID PRIMARY KEY,
            student_id UUID NOT NULL REFERENCES students(id) ON DELETE CASCADE,
            title VARCHAR(100) NOT NULL,
            icon VARCHAR(10) NOT NULL DEFAULT '✨',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_custom_habits_student_id
        ON custom_habits(student_id)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS family_logs (
            id SERIAL PRIMARY KEY,
            student_id UUID NOT NULL REFERENCES students(id) ON DELETE CASCADE,
            challenge_id VARCHAR(64) NOT NULL,
            won BOOLEAN NOT NULL DEFAULT false,
            xp_awarded INTEGER NOT NULL DEFAULT 0,
            log_date DATE NOT NULL,
            CONSTRAINT uq_family_logs_student_challenge_day UNIQUE (student_id, challenge_id, log_date)
        )
    """)


def downgrade() -> None:
    for table in [
        "family_logs",
        "custom_habits",
        "habit_logs",
        "challenge_submissions",
        "daily_challenges",
        "xp_transactions",
        "students",
        "clubs",
    ]:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
