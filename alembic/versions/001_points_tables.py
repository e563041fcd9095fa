"""Points engine tables.

Creates user_profiles, transactions, leaderboard_entries, platform_stats,
milestones, achievements and user_achievements, and seeds the singleton
platform_stats row.

Revision ID: 001_points_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_points_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- User Profiles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_profiles (
            address VARCHAR(64) PRIMARY KEY,
            fid BIGINT,
            username VARCHAR(64),
            display_name VARCHAR(128),
            pfp_url TEXT,
            tier VARCHAR(16) NOT NULL DEFAULT 'Bronze',
            total_points BIGINT NOT NULL DEFAULT 0 CHECK (total_points >= 0),
            current_rank INTEGER NOT NULL DEFAULT 0,
            total_transactions INTEGER NOT NULL DEFAULT 0,
            ptradoor_balance DOUBLE PRECISION NOT NULL DEFAULT 0,
            ptradoor_earned DOUBLE PRECISION NOT NULL DEFAULT 0,
            weekly_streak INTEGER NOT NULL DEFAULT 0,
            referrals INTEGER NOT NULL DEFAULT 0,
            achievements_count INTEGER NOT NULL DEFAULT 0,
            has_minted BOOLEAN NOT NULL DEFAULT false,
            initial BOOLEAN NOT NULL DEFAULT false,
            last_processed_block BIGINT,
            join_date TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            last_active TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_profiles_points
        ON user_profiles(total_points DESC)
    """)

    # --- Transactions (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id VARCHAR(32) PRIMARY KEY,
            user_address VARCHAR(64) NOT NULL REFERENCES user_profiles(address) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL,
            amount DOUBLE PRECISION NOT NULL DEFAULT 0,
            price DOUBLE PRECISION,
            points BIGINT NOT NULL DEFAULT 0,
            status VARCHAR(16) NOT NULL DEFAULT 'completed',
            tx_hash VARCHAR(80) UNIQUE,
            metadata JSONB NOT NULL DEFAULT '{}',
            timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_transactions_user_address
        ON transactions(user_address)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_transactions_timestamp
        ON transactions(timestamp DESC)
    """)

    # --- Leaderboard ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS leaderboard_entries (
            user_address VARCHAR(64) PRIMARY KEY REFERENCES user_profiles(address) ON DELETE CASCADE,
            points BIGINT NOT NULL DEFAULT 0,
            rank INTEGER NOT NULL DEFAULT 0,
            tier VARCHAR(16) NOT NULL DEFAULT 'Bronze',
            transactions INTEGER NOT NULL DEFAULT 0,
            ptradoor_balance DOUBLE PRECISION NOT NULL DEFAULT 0,
            last_updated TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_leaderboard_entries_points
        ON leaderboard_entries(points DESC)
    """)

    # --- Platform Stats (singleton) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS platform_stats (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            total_users BIGINT NOT NULL DEFAULT 0,
            total_transactions BIGINT NOT NULL DEFAULT 0,
            total_points BIGINT NOT NULL DEFAULT 0,
            ptradoor_supply DOUBLE PRECISION NOT NULL DEFAULT 1000000,
            ptradoor_circulating DOUBLE PRECISION NOT NULL DEFAULT 245000,
            last_updated TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (ptradoor_circulating <= ptradoor_supply)
        )
    """)
    op.execute("""
        INSERT INTO platform_stats (id) VALUES (1)
        ON CONFLICT (id) DO NOTHING
    """)

    # --- Milestones ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS milestones (
            id SERIAL PRIMARY KEY,
            name VARCHAR(128) UNIQUE NOT NULL,
            target BIGINT NOT NULL,
            current BIGINT NOT NULL DEFAULT 0,
            completed BOOLEAN NOT NULL DEFAULT false,
            type VARCHAR(16) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            icon VARCHAR(16) NOT NULL DEFAULT '',
            rarity VARCHAR(16) NOT NULL DEFAULT 'common',
            requirement_type VARCHAR(16) NOT NULL,
            requirement_value DOUBLE PRECISION NOT NULL,
            timeframe VARCHAR(16) NOT NULL DEFAULT 'all_time',
            points_reward INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true,
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- User Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            user_address VARCHAR(64) NOT NULL REFERENCES user_profiles(address) ON DELETE CASCADE,
            achievement_id VARCHAR(64) NOT NULL REFERENCES achievements(id),
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            progress DOUBLE PRECISION,
            PRIMARY KEY (user_address, achievement_id)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS milestones CASCADE")
    op.execute("DROP TABLE IF EXISTS platform_stats CASCADE")
    op.execute("DROP TABLE IF EXISTS leaderboard_entries CASCADE")
    op.execute("DROP TABLE IF EXISTS transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS user_profiles CASCADE")
